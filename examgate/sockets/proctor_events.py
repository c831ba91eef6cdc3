"""
Socket.IO Event Handlers
Secure-mode (full screen / visibility) reports from the exam page
"""
import logging

from flask import session, current_app
from flask_socketio import emit, join_room

from examgate.extensions import db, socketio
from examgate.models import Attempt
from examgate.services import AttemptService, proctor_registry
from examgate.services.errors import AlreadyCompleted, ExamgateError

logger = logging.getLogger(__name__)


def attempt_room(attempt_id):
    return f'attempt_{attempt_id}'


def _attempt_id(data):
    try:
        return int((data or {}).get('attempt_id'))
    except (TypeError, ValueError):
        return None


def _owned_attempt(attempt_id):
    """The attempt, if it belongs to the connected student"""
    if attempt_id is None or session.get('role') != 'student':
        return None
    attempt = db.session.get(Attempt, attempt_id)
    if attempt is None or attempt.student_id != session.get('user_id'):
        return None
    return attempt


def _proctor_error(message, attempt_id=None):
    emit('proctor_error', {'attemptId': attempt_id, 'message': message})


def forced_finalizer(app):
    """Callback a monitor uses to submit its attempt, possibly from a timer thread"""
    def finalize(attempt_id, reason):
        room = attempt_room(attempt_id)
        with app.app_context():
            try:
                result = AttemptService().finalize(attempt_id)
            except AlreadyCompleted:
                logger.info("Attempt %s was already submitted before forced submission", attempt_id)
                socketio.emit('attempt_finalized', {
                    'attemptId': attempt_id,
                    'reason': reason,
                    'alreadyCompleted': True,
                }, room=room)
                return
            except ExamgateError as e:
                logger.warning("Forced submission of attempt %s failed: %s", attempt_id, e.message)
                socketio.emit('proctor_error', {'attemptId': attempt_id, 'message': e.message}, room=room)
                return

            socketio.emit('attempt_finalized', {
                'attemptId': attempt_id,
                'reason': reason,
                'alreadyCompleted': False,
                'score': result.score,
                'totalItems': result.total_items,
                'answeredCount': result.answered_count,
            }, room=room)
    return finalize


def register_socket_events():
    """Register all Socket.IO event handlers"""

    @socketio.on('proctor_start')
    def proctor_start(data):
        """Exam page entered secure mode; start watching the attempt"""
        attempt_id = _attempt_id(data)
        attempt = _owned_attempt(attempt_id)
        if attempt is None:
            _proctor_error('Attempt not found', attempt_id)
            return
        if not attempt.is_in_progress:
            _proctor_error('Attempt is not in progress', attempt_id)
            return

        join_room(attempt_room(attempt_id))
        app = current_app._get_current_object()
        monitor = proctor_registry.start(attempt_id, forced_finalizer(app))
        emit('proctor_status', monitor.snapshot())

    @socketio.on('secure_mode_exited')
    def secure_mode_exited(data):
        """Full screen lost or page hidden"""
        attempt_id = _attempt_id(data)
        monitor = proctor_registry.get(attempt_id)
        if monitor is None or _owned_attempt(attempt_id) is None:
            _proctor_error('Proctoring is not active for this attempt', attempt_id)
            return

        status = monitor.secure_mode_exited()
        emit('proctor_warning', status)

    @socketio.on('secure_mode_restored')
    def secure_mode_restored(data):
        """Back in full screen before the countdown ran out"""
        attempt_id = _attempt_id(data)
        monitor = proctor_registry.get(attempt_id)
        if monitor is None or _owned_attempt(attempt_id) is None:
            _proctor_error('Proctoring is not active for this attempt', attempt_id)
            return

        emit('proctor_status', monitor.secure_mode_restored())

    @socketio.on('proctor_stop')
    def proctor_stop(data):
        """Exam page closed; the countdown stops but warnings carry over"""
        attempt_id = _attempt_id(data)
        if _owned_attempt(attempt_id) is None:
            _proctor_error('Attempt not found', attempt_id)
            return
        status = proctor_registry.pause(attempt_id)
        emit('proctor_status', status or {'attemptId': attempt_id, 'armed': False})

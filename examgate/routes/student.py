"""
Student Routes
Join by code, save progress, run tests, submit and view results
"""
import logging

from flask import Blueprint, request, session, jsonify, current_app

from examgate.services import AttemptService, ResultsService, proctor_registry
from examgate.services.errors import ValidationError
from examgate.utils import require_student

logger = logging.getLogger(__name__)

student_bp = Blueprint('student', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid request data')
    return data


@student_bp.route('/join', methods=['POST'])
@require_student
def join():
    """Join an assessment by code, resuming an in-progress attempt"""
    data = _json_body()
    code = data.get('assessmentCode') or data.get('examCode')
    if not code:
        raise ValidationError('Exam code is required')

    attempt, is_new = AttemptService().join(code, session['user_id'])
    return jsonify({
        'message': 'Exam attempt created successfully' if is_new else 'Continuing existing exam attempt',
        'attemptId': attempt.id,
        'isNewAttempt': is_new,
        'assessmentCode': attempt.assessment.join_code,
        'status': attempt.status,
    })


@student_bp.route('/assessments/<code>')
@require_student
def assessment_details(code):
    """Assessment content for the student's in-progress attempt"""
    _, attempt = AttemptService().active_attempt(code, session['user_id'])
    assessment = attempt.assessment

    saved = {answer.item_id: answer.value for answer in attempt.answers}
    return jsonify({
        'assessment': assessment.to_dict(timezone_name=current_app.config['TIMEZONE']),
        'attempt': attempt.to_dict(),
        'items': [item.to_dict() for item in assessment.items],
        'answers': saved,
        'timeLeftSeconds': attempt.time_left_seconds(),
    })


@student_bp.route('/assessments/<code>/save', methods=['POST'])
@require_student
def save_answer(code):
    """Save progress for one item"""
    data = _json_body()
    item_id = data.get('itemId')
    if item_id is None or 'value' not in data:
        raise ValidationError('Invalid request data')

    service = AttemptService()
    _, attempt = service.active_attempt(code, session['user_id'])
    answer = service.save_answer(attempt.id, item_id, data.get('value'))
    return jsonify({'message': 'Progress saved successfully', 'answer': answer.to_dict()})


@student_bp.route('/assessments/<code>/items/<int:item_id>/run', methods=['POST'])
@require_student
def run_tests(code, item_id):
    """Run an item's test cases; the ledger can be sent back as precomputed results"""
    data = _json_body()
    result = AttemptService().run_tests(
        code, session['user_id'], item_id,
        data.get('code') or '', data.get('language')
    )
    return jsonify({
        'marks': result.marks,
        'passed': result.correct,
        'ledger': result.result_ledger,
        'cases': [entry._asdict() for entry in result.entries],
    })


@student_bp.route('/assessments/<code>/submit', methods=['POST'])
@require_student
def submit(code):
    """Submit answers and finalize the attempt"""
    data = _json_body()
    answers = data.get('answers')
    if not isinstance(answers, dict):
        raise ValidationError('Invalid answers format')

    result = AttemptService().submit(
        code, session['user_id'], answers, data.get('currentLanguage')
    )
    proctor_registry.discard(result.attempt_id)

    return jsonify({
        'message': 'Exam submitted successfully',
        'attemptId': result.attempt_id,
        'score': result.score,
        'totalItems': result.total_items,
        'answeredCount': result.answered_count,
    })


@student_bp.route('/assessments/<code>/results')
@require_student
def results(code):
    """The student's own result for an assessment"""
    assessment = AttemptService.find_assessment(code)
    return jsonify(ResultsService.student_result(assessment, session['user_id']))


@student_bp.route('/dashboard')
@require_student
def dashboard():
    """All of the student's attempts and the assessments open to join"""
    return jsonify(ResultsService.student_dashboard(session['user_id']))

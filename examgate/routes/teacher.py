"""
Teacher Routes
Create assessments, move them through their lifecycle, view standings and answers
"""
from flask import Blueprint, request, session, jsonify, current_app

from examgate.services import AssessmentService, ResultsService
from examgate.services.errors import ValidationError
from examgate.utils import require_teacher

teacher_bp = Blueprint('teacher', __name__)


@teacher_bp.route('/assessments', methods=['POST'])
@require_teacher
def create_assessment():
    """Create a draft assessment; the join code is generated here"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid request data')

    assessment = AssessmentService().create(session['user_id'], data)
    return jsonify({
        'message': 'Exam created successfully',
        'assessment': assessment.to_dict(timezone_name=current_app.config['TIMEZONE']),
        'items': [item.to_dict(include_key=True) for item in assessment.items],
    }), 201


@teacher_bp.route('/assessments/<int:assessment_id>/<action>', methods=['POST'])
@require_teacher
def change_status(assessment_id, action):
    """publish / cancel / complete"""
    service = AssessmentService()
    handlers = {
        'publish': service.publish,
        'cancel': service.cancel,
        'complete': service.complete,
    }
    handler = handlers.get(action)
    if handler is None:
        raise ValidationError(f'Unknown action: {action}')

    assessment = handler(assessment_id, session['user_id'])
    return jsonify({'assessment': assessment.to_dict()})


@teacher_bp.route('/assessments/<code>/results')
@require_teacher
def results(code):
    """Standings for one of the teacher's assessments"""
    assessment = AssessmentService.owned_by_code(code, session['user_id'])
    standings = ResultsService.build_standings(assessment.id)
    return jsonify({
        'assessment': assessment.to_dict(),
        'participants': len(standings),
        'results': standings,
    })


@teacher_bp.route('/dashboard')
@require_teacher
def dashboard():
    """The teacher's assessments with attempt statistics and recent activity"""
    return jsonify(ResultsService.teacher_dashboard(
        session['user_id'], timezone_name=current_app.config['TIMEZONE']
    ))


@teacher_bp.route('/assessments/<code>/students/<int:student_id>')
@require_teacher
def student_answers(code, student_id):
    """One student's answers, with keys and decoded test results"""
    assessment = AssessmentService.owned_by_code(code, session['user_id'])
    return jsonify(ResultsService.student_answers(assessment, student_id))

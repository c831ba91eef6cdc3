"""
Assessment Service
Creation with a unique join code and the assessment status lifecycle
"""
import logging

from examgate.extensions import db
from examgate.models import Assessment, Item
from examgate.services.errors import NotFound, PermissionDenied, StateConflict, ValidationError
from examgate.utils.helpers import generate_join_code, parse_datetime

logger = logging.getLogger(__name__)

# Allowed status transitions
TRANSITIONS = {
    Assessment.STATUS_DRAFT: (Assessment.STATUS_PUBLISHED, Assessment.STATUS_CANCELLED),
    Assessment.STATUS_PUBLISHED: (Assessment.STATUS_COMPLETED, Assessment.STATUS_CANCELLED),
    Assessment.STATUS_COMPLETED: (),
    Assessment.STATUS_CANCELLED: (),
}


def _positive_int(value, message):
    if isinstance(value, bool):
        raise ValidationError(message)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if number != value and str(number) != str(value).strip():
        raise ValidationError(message)
    if number < 1:
        raise ValidationError(message)
    return number


class AssessmentService:
    """Assessment creation and status transitions"""

    @staticmethod
    def unique_join_code():
        """Generate join codes until one is unused"""
        code = generate_join_code()
        while Assessment.query.filter_by(join_code=code).first() is not None:
            logger.debug("Join code %s already taken, regenerating", code)
            code = generate_join_code()
        return code

    @staticmethod
    def _build_item(position, data):
        kind = str(data.get('kind') or data.get('type') or Item.KIND_CHOICE).upper()
        if kind not in Item.KINDS:
            raise ValidationError(f'Unknown question type: {kind}')
        prompt = (data.get('prompt') or data.get('question') or '').strip()
        if not prompt:
            raise ValidationError('Question is required')

        item = Item(
            order=position,
            kind=kind,
            prompt=prompt,
            answer_key=data.get('answerKey', data.get('correctAnswer', '')) or '',
            marks=_positive_int(data.get('marks'), 'Marks must be at least 1'),
            language=data.get('language'),
        )
        item.set_options(data.get('options') or data.get('testCases') or [])
        return item

    def create(self, owner_id, data):
        """
        Create a DRAFT assessment with its items.

        The item marks must add up to the declared total.
        """
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('Title is required')

        kind = str(data.get('kind') or Assessment.KIND_CHOICE_BASED).upper()
        if kind not in Assessment.KINDS:
            raise ValidationError(f'Unknown assessment type: {kind}')

        total_marks = _positive_int(data.get('totalMarks'), 'Total marks must be at least 1')
        duration = _positive_int(data.get('durationMinutes'), 'Duration must be at least 1 minute')

        try:
            start_at = parse_datetime(data.get('startAt'))
            end_at = parse_datetime(data.get('endAt'))
        except ValueError:
            raise ValidationError('Invalid date format')
        if end_at <= start_at:
            raise ValidationError('End date must be after start date')

        raw_items = data.get('items') or []
        if not raw_items:
            raise ValidationError('At least one question is required')
        items = [self._build_item(position, entry) for position, entry in enumerate(raw_items)]

        item_marks = sum(item.marks for item in items)
        if item_marks != total_marks:
            raise ValidationError(
                f'Total marks ({total_marks}) does not match the sum of question marks ({item_marks})'
            )

        assessment = Assessment(
            title=title,
            description=data.get('description') or '',
            join_code=self.unique_join_code(),
            kind=kind,
            total_marks=total_marks,
            start_at=start_at,
            end_at=end_at,
            duration_minutes=duration,
            status=Assessment.STATUS_DRAFT,
            owner_id=owner_id,
            items=items,
        )
        db.session.add(assessment)
        db.session.commit()
        logger.info("Assessment %s created with %d items", assessment.join_code, len(items))
        return assessment

    @staticmethod
    def owned(assessment_id, owner_id):
        assessment = db.session.get(Assessment, assessment_id)
        if assessment is None:
            raise NotFound('Exam not found')
        if assessment.owner_id != owner_id:
            raise PermissionDenied('You do not own this exam')
        return assessment

    @staticmethod
    def owned_by_code(code, owner_id):
        assessment = Assessment.query.filter_by(join_code=(code or '').strip().upper()).first()
        if assessment is None:
            raise NotFound('Exam not found')
        if assessment.owner_id != owner_id:
            raise PermissionDenied('You do not own this exam')
        return assessment

    def transition(self, assessment_id, owner_id, new_status):
        assessment = self.owned(assessment_id, owner_id)
        if new_status not in TRANSITIONS.get(assessment.status, ()):
            raise StateConflict(
                f'Cannot move exam from {assessment.status} to {new_status}'
            )
        assessment.status = new_status
        db.session.commit()
        logger.info("Assessment %s is now %s", assessment.join_code, new_status)
        return assessment

    def publish(self, assessment_id, owner_id):
        return self.transition(assessment_id, owner_id, Assessment.STATUS_PUBLISHED)

    def cancel(self, assessment_id, owner_id):
        return self.transition(assessment_id, owner_id, Assessment.STATUS_CANCELLED)

    def complete(self, assessment_id, owner_id):
        return self.transition(assessment_id, owner_id, Assessment.STATUS_COMPLETED)

"""
Results Service
A student's own results, the issuing teacher's standings and dashboards
"""
from examgate.extensions import db
from examgate.models import Answer, Assessment, Attempt, Item, User
from examgate.services.errors import NotFound
from examgate.services.ledger import decode_ledger
from examgate.utils.helpers import as_utc, now_utc
from sqlalchemy import func

RECENT_ACTIVITY_LIMIT = 10


def _item_details(assessment, attempt, reveal_keys):
    answers = {
        answer.item_id: answer
        for answer in Answer.query.filter_by(attempt_id=attempt.id).all()
    }

    details = []
    for item in assessment.items:
        answer = answers.get(item.id)
        detail = item.to_dict(include_key=reveal_keys)
        detail['answer'] = answer.value if answer else None
        detail['isCorrect'] = answer.is_correct if answer else False
        detail['marksAwarded'] = answer.marks_awarded if answer else 0
        if item.is_code:
            ledger = answer.result_ledger if answer else None
            detail['testResults'] = [
                entry._asdict() for entry in decode_ledger(ledger)
            ]
        details.append(detail)
    return details


class ResultsService:
    """Result payloads for students and teachers"""

    @staticmethod
    def student_result(assessment, student_id):
        """
        Attempt summary plus per-item answers.

        Code items carry their decoded ledger; answer keys are only shown
        once the attempt is completed.
        """
        attempt = Attempt.query.filter_by(
            assessment_id=assessment.id,
            student_id=student_id
        ).first()
        if attempt is None:
            raise NotFound('No attempt found for this exam')

        return {
            'assessment': assessment.to_dict(),
            'attempt': attempt.to_dict(),
            'items': _item_details(assessment, attempt, attempt.is_completed),
        }

    @staticmethod
    def student_answers(assessment, student_id):
        """One student's answers as the assessment owner sees them, keys included"""
        attempt = Attempt.query.filter_by(
            assessment_id=assessment.id,
            student_id=student_id
        ).first()
        if attempt is None:
            raise NotFound('No attempt found for this student')

        return {
            'assessment': assessment.to_dict(),
            'student': attempt.student.to_dict(),
            'attempt': attempt.to_dict(),
            'items': _item_details(assessment, attempt, True),
        }

    @staticmethod
    def build_standings(assessment_id):
        """
        Per-attempt standings for an assessment, highest score first

        Returns:
            list: dicts with student, status, score, answered, correct
        """
        rows = db.session.query(
            Attempt.id,
            User.username,
            Attempt.status,
            Attempt.score,
            Attempt.started_at,
            Attempt.ended_at,
            func.count(Answer.id).label("answered_count"),
            func.sum(
                db.case((Answer.is_correct == True, 1), else_=0)  # noqa: E712
            ).label("correct_count"),
        ).join(
            User, User.id == Attempt.student_id
        ).outerjoin(
            Answer, Answer.attempt_id == Attempt.id
        ).filter(
            Attempt.assessment_id == assessment_id
        ).group_by(
            Attempt.id, User.username, Attempt.status, Attempt.score,
            Attempt.started_at, Attempt.ended_at
        ).all()

        standings = [
            {
                "attemptId": row.id,
                "student": row.username,
                "status": row.status,
                "score": row.score,
                "answered": int(row.answered_count or 0),
                "correct": int(row.correct_count or 0),
            }
            for row in rows
        ]
        standings.sort(key=lambda entry: (entry["score"] is None, -(entry["score"] or 0), entry["student"]))
        return standings

    # ================= DASHBOARDS =================

    @staticmethod
    def teacher_dashboard(owner_id, timezone_name=None):
        """
        The owner's assessments, newest first, with attempt statistics,
        plus the latest attempts across all of them
        """
        attempt_stats = db.session.query(
            Attempt.assessment_id.label("assessment_id"),
            func.count(Attempt.id).label("total"),
            func.sum(
                db.case((Attempt.status == Attempt.STATUS_COMPLETED, 1), else_=0)
            ).label("completed"),
            func.avg(func.coalesce(Attempt.score, 0)).label("average"),
        ).group_by(Attempt.assessment_id).subquery()

        item_counts = db.session.query(
            Item.assessment_id.label("assessment_id"),
            func.count(Item.id).label("items"),
        ).group_by(Item.assessment_id).subquery()

        rows = db.session.query(
            Assessment,
            attempt_stats.c.total,
            attempt_stats.c.completed,
            attempt_stats.c.average,
            item_counts.c["items"],
        ).outerjoin(
            attempt_stats, attempt_stats.c.assessment_id == Assessment.id
        ).outerjoin(
            item_counts, item_counts.c.assessment_id == Assessment.id
        ).filter(
            Assessment.owner_id == owner_id
        ).order_by(
            Assessment.created_at.desc(), Assessment.id.desc()
        ).all()

        assessments = []
        for assessment, total, completed, average, items in rows:
            total = int(total or 0)
            completed = int(completed or 0)
            data = assessment.to_dict(timezone_name=timezone_name, item_count=int(items or 0))
            data.update({
                'totalAttempts': total,
                'completedAttempts': completed,
                'inProgressAttempts': total - completed,
                'averageScore': float(average or 0),
            })
            assessments.append(data)

        recent = db.session.query(Attempt, User.username, Assessment.title, Assessment.join_code).join(
            Assessment, Assessment.id == Attempt.assessment_id
        ).join(
            User, User.id == Attempt.student_id
        ).filter(
            Assessment.owner_id == owner_id
        ).order_by(
            func.coalesce(Attempt.ended_at, Attempt.started_at).desc(), Attempt.id.desc()
        ).limit(RECENT_ACTIVITY_LIMIT).all()

        recent_activity = []
        for attempt, username, title, code in recent:
            entry = attempt.to_dict()
            entry.update({'student': username, 'assessmentTitle': title, 'assessmentCode': code})
            recent_activity.append(entry)

        return {'assessments': assessments, 'recentActivity': recent_activity}

    @staticmethod
    def student_dashboard(student_id, now=None):
        """
        Every attempt the student made with its result, plus published
        assessments that are open now and not yet attempted
        """
        now = now or now_utc()
        answered = db.session.query(
            Answer.attempt_id.label("attempt_id"),
            func.count(Answer.id).label("answered"),
        ).group_by(Answer.attempt_id).subquery()

        rows = db.session.query(Attempt, Assessment, answered.c.answered).join(
            Assessment, Assessment.id == Attempt.assessment_id
        ).outerjoin(
            answered, answered.c.attempt_id == Attempt.id
        ).filter(
            Attempt.student_id == student_id
        ).order_by(
            Attempt.started_at.desc(), Attempt.id.desc()
        ).all()

        attempts = []
        attempted = set()
        for attempt, assessment, answered_count in rows:
            attempted.add(assessment.id)
            entry = attempt.to_dict()
            entry.update({
                'assessment': {
                    'id': assessment.id,
                    'title': assessment.title,
                    'code': assessment.join_code,
                    'totalMarks': assessment.total_marks,
                    'status': assessment.status,
                },
                'answeredCount': int(answered_count or 0),
            })
            attempts.append(entry)

        published = Assessment.query.filter_by(
            status=Assessment.STATUS_PUBLISHED
        ).order_by(Assessment.start_at).all()
        available = [
            {
                'id': assessment.id,
                'title': assessment.title,
                'description': assessment.description,
                'code': assessment.join_code,
                'durationMinutes': assessment.duration_minutes,
                'endAt': as_utc(assessment.end_at).isoformat(),
            }
            for assessment in published
            if assessment.id not in attempted
            and assessment.has_started(now) and not assessment.has_ended(now)
        ]

        return {'attempts': attempts, 'availableAssessments': available}

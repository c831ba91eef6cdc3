"""
Attempt Model
One student's single pass through an assessment
"""
from datetime import timedelta

from examgate.extensions import db
from examgate.utils.helpers import now_utc, as_utc


class Attempt(db.Model):
    """Attempt model"""
    __tablename__ = 'attempt'

    STATUS_NOT_STARTED = 'NOT_STARTED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_TIMED_OUT = 'TIMED_OUT'

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(
        db.Integer, db.ForeignKey('assessment.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_NOT_STARTED)
    started_at = db.Column(db.DateTime(timezone=True))
    ended_at = db.Column(db.DateTime(timezone=True))
    score = db.Column(db.Float, nullable=True)

    assessment = db.relationship('Assessment', lazy=True)
    student = db.relationship('User', lazy=True)
    answers = db.relationship(
        'Answer', backref='attempt', lazy=True, cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.UniqueConstraint(
            'assessment_id', 'student_id',
            name='unique_attempt_per_student'
        ),
    )

    def __repr__(self):
        return f'<Attempt {self.id} A{self.assessment_id} by U{self.student_id}: {self.status}>'

    @property
    def is_completed(self):
        return self.status == self.STATUS_COMPLETED

    @property
    def is_in_progress(self):
        return self.status == self.STATUS_IN_PROGRESS

    def deadline(self, grace_seconds=0):
        """Latest instant at which answers are still accepted"""
        if not self.started_at:
            return None
        assessment = self.assessment
        deadline = as_utc(self.started_at) + timedelta(minutes=assessment.duration_minutes)
        deadline = min(deadline, as_utc(assessment.end_at))
        return deadline + timedelta(seconds=grace_seconds)

    def time_left_seconds(self, now=None):
        deadline = self.deadline()
        if deadline is None:
            return None
        remaining = (deadline - (now or now_utc())).total_seconds()
        return max(0, int(remaining))

    def to_dict(self):
        return {
            'attemptId': self.id,
            'assessmentId': self.assessment_id,
            'studentId': self.student_id,
            'status': self.status,
            'startedAt': as_utc(self.started_at).isoformat() if self.started_at else None,
            'endedAt': as_utc(self.ended_at).isoformat() if self.ended_at else None,
            'score': self.score,
        }

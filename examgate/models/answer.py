"""
Answer Model
Stores one student response per item within an attempt
"""
from examgate.extensions import db
from examgate.utils.helpers import now_utc, as_utc


class Answer(db.Model):
    """Answer model"""
    __tablename__ = 'answer'

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(
        db.Integer, db.ForeignKey('attempt.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    item_id = db.Column(
        db.Integer, db.ForeignKey('item.id', ondelete='CASCADE'),
        nullable=False, index=True
    )

    # Raw value; code bundles are stored as JSON text
    value = db.Column(db.Text)

    # Code items only: input SEP1 expected SEP2 actual, joined with ||
    result_ledger = db.Column(db.Text)

    # Written once, at finalization
    is_correct = db.Column(db.Boolean, nullable=True)
    marks_awarded = db.Column(db.Float, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    item = db.relationship('Item', lazy=True)

    __table_args__ = (
        db.UniqueConstraint(
            'attempt_id', 'item_id',
            name='unique_answer_per_item'
        ),
    )

    def __repr__(self):
        return f'<Answer I{self.item_id} in attempt {self.attempt_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'attemptId': self.attempt_id,
            'itemId': self.item_id,
            'value': self.value,
            'isCorrect': self.is_correct,
            'marksAwarded': self.marks_awarded,
            'updatedAt': as_utc(self.updated_at).isoformat() if self.updated_at else None,
        }

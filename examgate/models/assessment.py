"""
Assessment Model
A published, timed unit of evaluation identified by a join code
"""
from examgate.extensions import db
from examgate.utils.helpers import now_utc, as_utc, utc_to_local


class Assessment(db.Model):
    """Assessment model"""
    __tablename__ = 'assessment'

    KIND_CHOICE_BASED = 'CHOICE_BASED'
    KIND_CODE_BASED = 'CODE_BASED'
    KINDS = (KIND_CHOICE_BASED, KIND_CODE_BASED)

    STATUS_DRAFT = 'DRAFT'
    STATUS_PUBLISHED = 'PUBLISHED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default='')
    join_code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    kind = db.Column(db.String(20), nullable=False, default=KIND_CHOICE_BASED)
    total_marks = db.Column(db.Integer, nullable=False)
    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    # Relationships
    items = db.relationship(
        'Item', backref='assessment', lazy=True,
        order_by='Item.order', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Assessment {self.join_code}: {self.title}>'

    @property
    def is_published(self):
        return self.status == self.STATUS_PUBLISHED

    def has_started(self, now=None):
        return (now or now_utc()) >= as_utc(self.start_at)

    def has_ended(self, now=None):
        return (now or now_utc()) > as_utc(self.end_at)

    def to_dict(self, timezone_name=None, item_count=None):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'code': self.join_code,
            'kind': self.kind,
            'totalMarks': self.total_marks,
            'durationMinutes': self.duration_minutes,
            'status': self.status,
            'startAt': as_utc(self.start_at).isoformat(),
            'endAt': as_utc(self.end_at).isoformat(),
            'createdAt': as_utc(self.created_at).isoformat() if self.created_at else None,
            'itemCount': len(self.items) if item_count is None else item_count,
        }
        if timezone_name:
            data['startAtLocal'] = utc_to_local(self.start_at, timezone_name).isoformat()
            data['endAtLocal'] = utc_to_local(self.end_at, timezone_name).isoformat()
        return data

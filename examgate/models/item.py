"""
Item Model
One question within an assessment: choice, text or code
"""
from examgate.extensions import db
import json


class Item(db.Model):
    """Item model"""
    __tablename__ = 'item'

    KIND_CHOICE = 'CHOICE'
    KIND_SINGLE_CHOICE = 'SINGLE_CHOICE'
    KIND_TRUE_FALSE = 'TRUE_FALSE'
    KIND_TEXT = 'TEXT'
    KIND_SHORT_ANSWER = 'SHORT_ANSWER'
    KIND_LONG_ANSWER = 'LONG_ANSWER'
    KIND_CODE = 'CODE'
    KINDS = (
        KIND_CHOICE, KIND_SINGLE_CHOICE, KIND_TRUE_FALSE,
        KIND_TEXT, KIND_SHORT_ANSWER, KIND_LONG_ANSWER, KIND_CODE,
    )

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(
        db.Integer, db.ForeignKey('assessment.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    order = db.Column(db.Integer, default=0)
    kind = db.Column(db.String(20), nullable=False, default=KIND_CHOICE)
    prompt = db.Column(db.Text, nullable=False)

    # Choice options, or one test case per entry for code items
    options = db.Column(db.Text)  # Store as JSON string

    # Correct option text, or reference solution for code/text items
    answer_key = db.Column(db.Text, default='')
    marks = db.Column(db.Integer, nullable=False, default=1)

    # Default execution language for code items
    language = db.Column(db.String(30))

    def __repr__(self):
        return f'<Item {self.id} ({self.kind}): {self.prompt[:50]}>'

    @property
    def is_code(self):
        return self.kind == self.KIND_CODE

    def set_options(self, options):
        self.options = json.dumps(list(options or []))

    def get_options(self):
        """Get options as a list of strings"""
        if not self.options:
            return []
        try:
            decoded = json.loads(self.options)
        except (TypeError, ValueError):
            # Older rows store newline-joined test cases
            return self.options.splitlines()
        if isinstance(decoded, str):
            return decoded.splitlines()
        return [str(entry) for entry in decoded]

    @property
    def test_cases(self):
        """Raw test-case strings for code items"""
        return self.get_options() if self.is_code else []

    def to_dict(self, include_key=False):
        data = {
            'id': self.id,
            'order': self.order,
            'kind': self.kind,
            'prompt': self.prompt,
            'marks': self.marks,
        }
        if self.is_code:
            data['language'] = self.language
            data['testCaseCount'] = len(self.test_cases)
        else:
            data['options'] = self.get_options()
        if include_key:
            data['answerKey'] = self.answer_key
        return data

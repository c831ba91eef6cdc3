"""
User Model
Teachers issue assessments, students attempt them
"""
from examgate.extensions import db


class User(db.Model):
    """User model"""
    __tablename__ = 'user'

    ROLE_TEACHER = 'teacher'
    ROLE_STUDENT = 'student'
    ROLES = (ROLE_TEACHER, ROLE_STUDENT)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_STUDENT)

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'

    def to_dict(self):
        return {'id': self.id, 'username': self.username, 'role': self.role}

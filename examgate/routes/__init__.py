"""
Routes Package
Exports all route blueprints
"""
from examgate.routes.auth import auth_bp
from examgate.routes.teacher import teacher_bp
from examgate.routes.student import student_bp

__all__ = ['auth_bp', 'teacher_bp', 'student_bp']

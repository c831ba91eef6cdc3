"""
Models Package
Exports all database models
"""
from examgate.models.user import User
from examgate.models.assessment import Assessment
from examgate.models.item import Item
from examgate.models.attempt import Attempt
from examgate.models.answer import Answer

__all__ = ['User', 'Assessment', 'Item', 'Attempt', 'Answer']

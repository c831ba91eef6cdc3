"""
Utils Package
"""
from examgate.utils.helpers import (
    now_utc,
    as_utc,
    utc_to_local,
    parse_datetime,
    generate_join_code,
    get_current_user,
    require_teacher,
    require_student
)

__all__ = [
    'now_utc',
    'as_utc',
    'utc_to_local',
    'parse_datetime',
    'generate_join_code',
    'get_current_user',
    'require_teacher',
    'require_student'
]

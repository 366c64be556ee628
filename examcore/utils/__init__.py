"""
Utils Package
"""
from examcore.utils.helpers import (
    now_utc,
    ensure_aware,
    local_date,
    isoformat,
    get_caller_id,
    require_caller
)

__all__ = [
    'now_utc',
    'ensure_aware',
    'local_date',
    'isoformat',
    'get_caller_id',
    'require_caller'
]

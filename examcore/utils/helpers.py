"""
Helper Functions
Utility functions used across the application
"""
from datetime import datetime, timezone
from functools import wraps

from flask import current_app, g, request
import pytz

from examcore.errors import UnauthorizedError


def now_utc():
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def ensure_aware(dt):
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.utc)
    return dt


def local_date(dt, tz_name='UTC'):
    """Calendar date of a timestamp in the configured zone"""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(pytz.timezone(tz_name)).date()


def isoformat(dt):
    if not dt:
        return None
    return ensure_aware(dt).isoformat()


def get_caller_id():
    """Caller id verified upstream, or None"""
    header = current_app.config.get('CALLER_ID_HEADER', 'X-User-Id')
    caller_id = (request.headers.get(header) or '').strip()
    return caller_id or None


# Decorators
def require_caller(f):
    """
    Decorator to require an identified caller
    Stores the id on g.caller_id
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller_id = get_caller_id()
        if not caller_id:
            raise UnauthorizedError("User ID is required")
        g.caller_id = caller_id
        return f(*args, **kwargs)
    return decorated_function

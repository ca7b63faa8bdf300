from datetime import datetime
import os

import pytz
from sqlalchemy.orm import class_mapper
from dotenv import load_dotenv

load_dotenv()

APP_TIMEZONE = pytz.timezone(os.getenv("APP_TIMEZONE", "Asia/Kolkata"))


def local_now() -> datetime:
    """Current time in the configured application timezone."""
    return datetime.now(APP_TIMEZONE)


def sqlalchemy_to_dict(obj):
    """Convert a SQLAlchemy object to a dictionary."""
    if not obj:
        return None
    mapper = class_mapper(obj.__class__)
    result = {}
    for c in mapper.columns:
        value = getattr(obj, c.key)
        # Convert datetime objects to ISO format strings
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        # Convert Decimal objects to floats
        elif hasattr(value, 'normalize') and hasattr(value, 'from_float'):  # Check if it's a Decimal
            value = float(value)
        # Convert enum types to strings
        elif hasattr(value, 'name'):  # Check if it's an enum
            value = value.name
        result[c.key] = value
    return result

__all__ = ['APP_TIMEZONE', 'local_now', 'sqlalchemy_to_dict']

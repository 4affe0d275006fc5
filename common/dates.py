from datetime import date, datetime

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import ValidationFailed


def to_date(value, field='date'):
    """Coerce a date, datetime or ISO string to a date. Unparseable input raises ValidationFailed."""
    if isinstance(value, datetime):
        return timezone.localdate(value) if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationFailed(f"{field} is required")
    try:
        parsed = parse_date(str(value))
        if parsed is None:
            parsed_dt = parse_datetime(str(value))
            parsed = parsed_dt.date() if parsed_dt else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationFailed(f"Invalid {field}")
    return parsed


def to_datetime(value, field='date'):
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    if isinstance(value, date):
        return timezone.make_aware(datetime(value.year, value.month, value.day))
    if not value:
        raise ValidationFailed(f"{field} is required")
    try:
        parsed = parse_datetime(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        return to_datetime(to_date(value, field), field)
    return parsed if timezone.is_aware(parsed) else timezone.make_aware(parsed)


def optional_date(value, field='date'):
    if value in (None, ''):
        return None
    return to_date(value, field)

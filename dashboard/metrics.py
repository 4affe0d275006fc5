from dateutil.relativedelta import relativedelta

from common.exceptions import ValidationFailed

TIME_RANGES = {
    'week': relativedelta(weeks=1),
    'month': relativedelta(months=1),
    'quarter': relativedelta(months=3),
    'year': relativedelta(years=1),
}

HISTORY_PERIODS = {
    '6months': relativedelta(months=6),
    '1year': relativedelta(years=1),
    'all': None,
}


def period_start(time_range, now):
    try:
        return now - TIME_RANGES[time_range]
    except KeyError:
        raise ValidationFailed(f"Invalid time range. Use one of: {', '.join(TIME_RANGES)}")


def previous_period(time_range, now):
    """(start, end) of the window immediately before the current one."""
    end = period_start(time_range, now)
    return end - TIME_RANGES[time_range], end


def history_start(period, now):
    if period not in HISTORY_PERIODS:
        raise ValidationFailed(f"Invalid period. Use one of: {', '.join(HISTORY_PERIODS)}")
    delta = HISTORY_PERIODS[period]
    return now - delta if delta else None


def calculate_trend(current, previous):
    if previous == 0:
        return 100
    return round((current - previous) / previous * 100, 1)


def percentage(part, whole, digits=1):
    if not whole:
        return 0
    return round(part / whole * 100, digits)

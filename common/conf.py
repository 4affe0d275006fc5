from django.conf import settings

DEFAULTS = {
    'DONATION_INTERVAL_DAYS': {
        'donations': 56,
        'management': 90,
        'schedule': 90,
        'status': 90,
        'reminders': 90,
    },
    'UNIT_SHELF_LIFE_DAYS': 42,
    'RESERVATION_HOLD_HOURS': 24,
    'EXPIRY_WARNING_DAYS': 7,
    'LOW_STOCK_THRESHOLD': 5,
    'NOTIFICATION_LOW_STOCK_THRESHOLD': 10,
    'MONTHLY_DONATION_GOAL': 100,
    'TEMPERATURE_CRITICAL_RANGE': (2.0, 6.0),
    'TEMPERATURE_WARNING_RANGE': (3.0, 5.0),
    'MAINTENANCE_CRITICAL_EVENT_LIMIT': 3,
    'MAINTENANCE_LOOKBACK_DAYS': 30,
    'MAINTENANCE_INTERVAL_DAYS': 90,
    'DELETE_POLICY': {
        'donor': 'hard',
        'recipient': 'soft',
        'user': 'archive',
    },
    'EMAIL_VERIFICATION_TTL_HOURS': 24,
    'PASSWORD_RESET_TTL_MINUTES': 60,
    'MIN_PASSWORD_LENGTH': 6,
    'ADMIN_REGISTRATION_CODE': '',
    'NOTIFICATIONS_ASYNC': True,
    'NOTIFICATION_WORKERS': 2,
}


def get_setting(name):
    """Read a business constant from settings.BLOODBANK, falling back to DEFAULTS."""
    overrides = getattr(settings, 'BLOODBANK', {})
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]


def delete_policy(resource):
    return get_setting('DELETE_POLICY').get(resource, 'hard')

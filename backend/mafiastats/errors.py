from datetime import date, datetime


class APIError(Exception):
    """Error carrying the HTTP status it should be reported with."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationError(APIError):
    status_code = 400


class NotFoundError(APIError):
    status_code = 404


class ConflictError(APIError):
    status_code = 409


class WebhookError(APIError):
    status_code = 400


def parse_id(value, field='id'):
    """Parse a positive integer identifier or raise ValidationError."""
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{field} must be an integer')
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')
    if parsed <= 0:
        raise ValidationError(f'{field} must be positive')
    return parsed


def parse_count(value, field='count'):
    """Parse a non-negative whole number; missing means 0."""
    if value is None or value == '':
        return 0
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{field} must be a whole number')
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a whole number')
    if parsed < 0:
        raise ValidationError(f'{field} cannot be negative')
    return parsed


def parse_date(value, field='date'):
    """Parse an ISO date (YYYY-MM-DD); a full timestamp keeps only its date part."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format')


def parse_datetime(value, field='date'):
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an ISO timestamp')

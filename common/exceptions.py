from rest_framework import status
from rest_framework.response import Response


class BloodBankError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Unexpected error'

    def __init__(self, message=None, errors=None, **extra):
        self.message = message or self.default_message
        self.errors = errors
        self.extra = extra
        super().__init__(self.message)

    def as_payload(self):
        if self.errors:
            payload = {'errors': self.errors}
        else:
            payload = {'error': self.message}
        payload.update(self.extra)
        return payload


class ValidationFailed(BloodBankError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Validation failed'


class InvalidTransition(ValidationFailed):
    default_message = 'Invalid status transition'


class ConflictError(BloodBankError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Duplicate record'


class AuthenticationRequired(BloodBankError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Not authenticated'


class AuthorizationError(BloodBankError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Permission denied'


class RecordNotFound(BloodBankError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class DependencyError(BloodBankError):
    default_message = 'External service failure'


def error_response(exc):
    return Response(exc.as_payload(), status=exc.status_code)


def serializer_errors(errors):
    """Flatten DRF serializer errors into a list of 'field: message' strings."""
    messages = []
    for field, field_errors in errors.items():
        if isinstance(field_errors, dict):
            for message in serializer_errors(field_errors):
                messages.append(f"{field}.{message}")
            continue
        if not isinstance(field_errors, (list, tuple)):
            field_errors = [field_errors]
        for error in field_errors:
            if field == 'non_field_errors':
                messages.append(str(error))
            else:
                messages.append(f"{field}: {error}")
    return messages


def validate_or_raise(serializer):
    if not serializer.is_valid():
        raise ValidationFailed(errors=serializer_errors(serializer.errors))
    return serializer.validated_data

from fastapi import status


class AniNotionError(Exception):
    """Base class for conditions the caller turns into a response"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(AniNotionError):
    """No principal, or the principal's account is disabled"""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(AniNotionError):
    """Principal present but its role is not allowed"""
    status_code = status.HTTP_403_FORBIDDEN


class ValidationFailed(AniNotionError):
    """Entity fields violate schema invariants"""
    status_code = 422

    def __init__(self, fields: dict[str, str]):
        self.fields = dict(fields)
        details = "; ".join(f"{name}: {reason}" for name, reason in self.fields.items())
        super().__init__(f"Validation failed: {details}")


class InvalidTransition(AniNotionError):
    """Requested status change is not allowed from the current status"""
    status_code = status.HTTP_400_BAD_REQUEST

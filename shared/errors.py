# shared/errors.py
"""
Error taxonomy shared by every route.

Each error is an HTTPException so FastAPI can raise it from dependencies and
handlers alike; the handlers in shared.middleware render the JSON body.
"""

from typing import Optional

from fastapi import HTTPException, status


class APIError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[list[str]] = None,
        details: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.fields = fields
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.fields:
            body["fields"] = self.fields
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Missing or invalid fields"


class AuthError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid token"


class ForbiddenError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Duplicate value"


class InternalError(APIError):
    default_message = "Database error"

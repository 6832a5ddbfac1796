"""Error taxonomy surfaced at the HTTP boundary as ``{"error": message}``."""

from typing import Optional


class RegistryError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RegistryError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(RegistryError):
    status_code = 400
    default_message = "username or email already exists"


class NotFoundError(RegistryError):
    status_code = 404
    default_message = "Not found"


class InternalError(RegistryError):
    pass

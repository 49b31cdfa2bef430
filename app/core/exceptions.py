# app/core/exceptions.py
"""
Application exception hierarchy.

Every error carries its HTTP status code and a machine-readable
`error_type`; `app.core.exception_handlers` turns them into
`{"type": ..., "message": ...}` JSON responses. Messages are the
user-facing (Spanish) strings, or the remote service message when one
is passed through.
"""


class AppException(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "Ocurrió un error inesperado"):
        self.message = message
        super().__init__(message)


# ----- 4xx -----


class AuthenticationError(AppException):
    status_code = 401
    error_type = "authentication_error"

    def __init__(self, message: str = "No autorizado"):
        super().__init__(message)


class PermissionDeniedError(AppException):
    status_code = 403
    error_type = "permission_denied"

    def __init__(self, message: str = "No tienes permisos para esta acción"):
        super().__init__(message)


class NotFoundError(AppException):
    status_code = 404
    error_type = "not_found"

    def __init__(self, message: str = "Recurso no encontrado"):
        super().__init__(message)


class ValidationError(AppException):
    """Input rejected by an application rule (not by pydantic)."""

    status_code = 400
    error_type = "validation_error"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    error_type = "payload_too_large"


class IdentityError(AppException):
    """
    Error reported by the identity service (sign-in, sign-up, reset...).

    The remote message is kept verbatim so it can be shown to the user.
    """

    status_code = 400
    error_type = "identity_error"


class RegistrationError(AppException):
    """Sign-up succeeded remotely but the profile row could not be written."""

    status_code = 500
    error_type = "registration_error"


# ----- data / storage -----


class ProfileNotFoundError(AppException):
    """A principal exists but has no row in `profiles`."""

    status_code = 403
    error_type = "profile_not_found"

    def __init__(self, message: str = "Perfil no encontrado"):
        super().__init__(message)


class ProfileLookupError(AppException):
    status_code = 500
    error_type = "profile_lookup_error"

    def __init__(self, message: str = "No se pudo obtener el perfil"):
        super().__init__(message)


class ProfileWriteError(AppException):
    status_code = 500
    error_type = "profile_write_error"

    def __init__(self, message: str = "No se pudo guardar el perfil"):
        super().__init__(message)


class StorageError(AppException):
    """Object storage call failed (upload, remove, bucket admin)."""

    status_code = 500
    error_type = "storage_error"

    def __init__(self, message: str = "Error al subir el archivo"):
        super().__init__(message)


class CourseCreationError(AppException):
    """
    A step of the course creation sequence failed.

    `step` names the failed step: "portada", "video", "material" or
    "registro" (the row insert).
    """

    status_code = 500
    error_type = "course_creation_error"

    def __init__(self, step: str, detail: str):
        self.step = step
        super().__init__(f"Error al crear el curso (paso: {step}): {detail}")

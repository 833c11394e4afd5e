"""
crudkit Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions plus the error-code catalogue used to
       build every error response.
Why:   Controllers raise typed errors; a single set of global handlers
       (registered in main.py) turns them into the standard envelope:
           {"code": "...", "message": "...", "uiMessage": "...", "requestId": "..."}
How:   Each exception carries an HTTP status, a domain code and a context
       dict. translate_error() resolves a code to its message pair.

Exception Hierarchy:
    AppError (base)
    ├── InvalidConfiguration     → raised at construction time (500)
    ├── ValidationError          → 400 Bad Request
    ├── Unauthorized             → 401 Unauthorized
    ├── Forbidden                → 403 Forbidden        (code 204)
    ├── NotFoundError            → 404 Not Found
    ├── VerificationStateError   → 400 Bad Request
    │   ├── VerificationExpired  (code 309)
    │   ├── AlreadyVerified      (code 310)
    │   └── VerificationMismatch (code 311)
    ├── StoreFailure             → 500 unless the store code maps elsewhere
    ├── FileStorageError         → 500 Internal Server Error
    └── Unimplemented            → 501 Not Implemented

    UpstreamError is NOT an AppError: collaborators (stores, user manager)
    raise it with their own code, and controllers wrap it in StoreFailure.
"""

from typing import Any, Dict, Mapping, Optional


# ══════════════════════════════════════════════════════════════════════════
# Error Code Catalogue
# ══════════════════════════════════════════════════════════════════════════

# code → (message, uiMessage)
ERROR_MESSAGES: Dict[str, tuple] = {
    "204": ("Forbidden", "You do not have permission to access this item"),
    "307": ("Verification code could not be generated", "Please try again later"),
    "308": ("Verification code could not be sent", "Please check your phone number or email"),
    "309": ("Verification code has expired", "Your code has expired, please request a new one"),
    "310": ("Account is already verified", "Your account has already been verified"),
    "311": ("Verification code does not match", "The code you entered is incorrect"),
    "400": ("Bad request", "Invalid input data"),
    "401": ("Unauthorized", "Unauthorized"),
    "404": ("Not found", "The requested item was not found"),
    "501": ("Not implemented", "API service has not been implemented"),
    "1000": ("Internal server error", "An unexpected error occurred. Please try again later."),
    "1001": ("Invalid configuration", "The service is misconfigured"),
    "1002": ("File storage error", "Could not save the uploaded file. Please try again."),
}


def translate_error(
    code: Optional[str] = None,
    message: Optional[str] = None,
    ui_message: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build an error payload from a domain code.

    Explicit message/ui_message override the catalogue entry; unknown codes
    fall back to the internal error text.
    """
    default_message, default_ui = ERROR_MESSAGES.get(code or "", ERROR_MESSAGES["1000"])
    payload = {
        "code": code or "1000",
        "message": message or default_message,
        "uiMessage": ui_message or default_ui,
    }
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


# ══════════════════════════════════════════════════════════════════════════
# Exceptions
# ══════════════════════════════════════════════════════════════════════════


class AppError(Exception):
    """
    Base exception for all crudkit application errors.

    Attributes:
        message:     Developer-facing description (returned as `message`)
        ui_message:  End-user text (returned as `uiMessage`)
        code:        Domain error code looked up in ERROR_MESSAGES
        status_code: HTTP status used by the global handler
        context:     Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    code: str = "1000"

    def __init__(
        self,
        message: Optional[str] = None,
        ui_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        default_message, default_ui = ERROR_MESSAGES.get(self.code, ERROR_MESSAGES["1000"])
        self.message = message or default_message
        self.ui_message = ui_message or default_ui
        self.context = context or {}
        super().__init__(self.message)

    def to_payload(self, **extra: Any) -> Dict[str, Any]:
        return translate_error(self.code, self.message, self.ui_message, **extra)


class InvalidConfiguration(AppError):
    """Raised when a controller or route is constructed with missing options."""

    code = "1001"


class ValidationError(AppError):
    """
    Raised when client input fails validation.

    HTTP:  400 Bad Request
    `errors` carries the per-field details from pydantic when available.
    """

    status_code = 400
    code = "400"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, ui_message=message, context=ctx)
        self.field = field
        self.errors = errors or []

    def to_payload(self, **extra: Any) -> Dict[str, Any]:
        if self.errors:
            extra.setdefault("errors", self.errors)
        return super().to_payload(**extra)


class Unauthorized(AppError):
    """Missing or unknown credentials. HTTP 401."""

    status_code = 401
    code = "401"


class Forbidden(AppError):
    """
    Raised when the caller does not own the requested record.

    HTTP:  403 Forbidden, domain code 204
    """

    status_code = 403
    code = "204"


class NotFoundError(AppError):
    """
    Raised when a requested record does not exist (primary-key miss).

    HTTP:  404 Not Found
    """

    status_code = 404
    code = "404"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class VerificationStateError(AppError):
    """Base for OTP state-machine violations. HTTP 400."""

    status_code = 400


class VerificationExpired(VerificationStateError):
    code = "309"


class AlreadyVerified(VerificationStateError):
    code = "310"


class VerificationMismatch(VerificationStateError):
    code = "311"


class StoreFailure(AppError):
    """
    Wraps an error raised by a store or another upstream collaborator.

    What:    Keeps the original exception. Only an UpstreamError contributes
             its domain code; driver errors (SQLAlchemy codes, SQL text,
             bound parameters) become an opaque 1000 and are only logged.
    HTTP:    500, unless `codes` maps the store code to another status
             (e.g. {"307": 400} for user-manager OTP failures).
    """

    def __init__(
        self,
        original: BaseException,
        codes: Optional[Mapping[str, int]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        store_code = None
        status_code = 500
        message = None
        if isinstance(original, UpstreamError) and original.code is not None:
            store_code = str(original.code)
            status_code = (codes or {}).get(store_code, 500)
            if store_code not in ERROR_MESSAGES:
                message = str(original) or None
        super().__init__(
            message=message,
            context={**(context or {}), "original": repr(original)},
            code=store_code,
            status_code=status_code,
        )
        self.original = original
        self.store_code = store_code


class FileStorageError(AppError):
    """
    Raised when file system operations fail.

    HTTP:    500 Internal Server Error
    Details (paths, OS errors) stay in context and are only logged.
    """

    code = "1002"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class Unimplemented(AppError):
    """Route or handler does not exist. HTTP 501."""

    status_code = 501
    code = "501"


class UpstreamError(Exception):
    """
    Error raised by an external collaborator with its own domain code.

    Controllers never let it escape: it is wrapped in StoreFailure.
    """

    def __init__(self, message: str = "Upstream operation failed", code: Optional[str] = None):
        super().__init__(message)
        self.code = code

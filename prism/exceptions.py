"""
Gateway error taxonomy and registry exceptions
"""

from typing import Optional, Dict, Any


class GatewayError(Exception):
    """Base for errors that are rendered to the caller as an OpenAI-style error body"""

    error_type = "server_error"
    status_code = 500

    def __init__(self, message: str, param: Optional[str] = None, code: Optional[str] = None):
        self.message = message
        self.param = param
        self.code = code
        self.model: Optional[str] = None
        self.phase: Optional[str] = None
        super().__init__(message)

    def add_context(self, model: Optional[str] = None, phase: Optional[str] = None) -> "GatewayError":
        """Record which model and which phase the error surfaced in"""
        if model is not None:
            self.model = model
        if phase is not None:
            self.phase = phase
        return self

    def to_dict(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"message": self.message, "type": self.error_type}
        if self.param is not None:
            detail["param"] = self.param
        if self.code is not None:
            detail["code"] = self.code
        return {"error": detail}

    def __str__(self) -> str:
        if self.model and self.phase:
            return f"{self.error_type} ({self.phase} on {self.model}): {self.message}"
        return f"{self.error_type}: {self.message}"


class InvalidRequestError(GatewayError):
    error_type = "invalid_request_error"
    status_code = 400


class AuthenticationError(GatewayError):
    error_type = "authentication_error"
    status_code = 401


class PermissionDeniedError(GatewayError):
    error_type = "permission_error"
    status_code = 403


class NotFoundError(GatewayError):
    error_type = "not_found_error"
    status_code = 404


class ModelNotFoundError(NotFoundError):
    """Raised when no adapter is bound to the requested model name"""

    def __init__(self, model_name: str):
        super().__init__("model not found", param="model", code="model_not_found")
        self.model = model_name


class UpstreamTimeoutError(GatewayError):
    error_type = "timeout_error"
    status_code = 408


class RateLimitError(GatewayError):
    error_type = "rate_limit_error"
    status_code = 429

    def __init__(self, message: str, param: Optional[str] = None, code: Optional[str] = "rate_limit_exceeded"):
        super().__init__(message, param=param, code=code)


class UpstreamError(GatewayError):
    """Backend call failed for a reason with no more specific kind"""

    error_type = "api_error"
    status_code = 500


class ServerError(GatewayError):
    error_type = "server_error"
    status_code = 500


class AdapterHealthError(ServerError):
    """Raised by the registry health check, naming the first unhealthy model"""

    def __init__(self, model_name: str, cause: Exception):
        super().__init__(f"adapter for model {model_name} health check failed: {cause}")
        self.model = model_name
        self.phase = "health_check"
        self.cause = cause


class AdapterAlreadyRegisteredError(Exception):
    """Raised when a model name is registered a second time"""

    def __init__(self, model_name: str):
        self.model_name = model_name
        super().__init__(f"model {model_name} already registered")


_STATUS_ERRORS = {
    400: InvalidRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    408: UpstreamTimeoutError,
    429: RateLimitError,
}


def error_from_status(status_code: int, message: str) -> GatewayError:
    """Map a backend HTTP status to the matching error kind"""
    error_cls = _STATUS_ERRORS.get(status_code, UpstreamError)
    return error_cls(message)

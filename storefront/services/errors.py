"""
Service layer exceptions.

Every failed attempt against the backend is described by exactly one of
ProtocolError, NetworkError or RequestTimeoutError.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    retryable: bool = False

    def __init__(self, message: str, service_id: str | None = None):
        self.message = message
        self.service_id = service_id
        super().__init__(message)


class ProtocolError(ServiceError):
    """Upstream answered with a status the caller does not accept."""

    def __init__(
        self,
        status: int,
        message: str,
        code: str | None = None,
        retryable: bool | None = None,
        service_id: str | None = None,
    ):
        self.status = status
        self.code = code
        # 5xx is worth another attempt, everything else is not unless told so
        self.retryable = status >= 500 if retryable is None else retryable
        super().__init__(message, service_id=service_id)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def __repr__(self) -> str:
        return (
            f"ProtocolError(status={self.status}, message={self.message!r}, "
            f"code={self.code!r}, retryable={self.retryable})"
        )


class NetworkError(ServiceError):
    """No answer at all: connection refused, DNS failure, reset, etc."""

    retryable = True


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    retryable = True

    def __init__(self, timeout: float, service_id: str | None = None):
        self.timeout = timeout
        target = f"service '{service_id}'" if service_id else "backend"
        super().__init__(
            f"Request to {target} timed out after {timeout}s",
            service_id=service_id,
        )


class ConfigurationError(ServiceError):
    """Invalid or missing configuration detected at startup."""

    pass

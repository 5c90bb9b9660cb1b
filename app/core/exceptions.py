"""
Custom exception hierarchy for the emulator backend.

All application-level exceptions inherit from AppException so they can be
caught by a single global handler.
"""


class AppException(Exception):
    """Base for all app exceptions."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class FlowValidationError(AppException):
    """Raised before any gateway call when a flow's inputs are incomplete."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class ApmRuleViolation(FlowValidationError):
    """Raised when an APM payment breaks the method's field/geo rules."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details)
        self.error_code = "APM_RULE_VIOLATION"


class UnknownEndpointError(AppException):
    """Raised when an operation name is not in the endpoint registry."""

    def __init__(self, endpoint: str):
        super().__init__(
            status_code=500,
            error_code="UNKNOWN_ENDPOINT",
            message=f"Unknown endpoint: {endpoint}. Cannot calculate checksum.",
            details={"endpoint": endpoint},
        )


class ChecksumNotApplicableError(AppException):
    """Raised when a checksum is requested for an endpoint that takes none."""

    def __init__(self, endpoint: str):
        super().__init__(
            status_code=500,
            error_code="CHECKSUM_NOT_APPLICABLE",
            message=f"Endpoint {endpoint} does not require checksum.",
            details={"endpoint": endpoint},
        )


class ScenarioNotFoundError(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=404,
            error_code="SCENARIO_NOT_FOUND",
            message=message,
            details=details,
        )


class GatewayTransportError(AppException):
    """Raised when the gateway cannot be reached (network error, timeout)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=502,
            error_code="GATEWAY_TRANSPORT_ERROR",
            message=message,
            details=details,
        )

"""
Orchestration exceptions.
"""


class OrchestrationError(Exception):
    """Base orchestration error."""

    def __init__(self, message: str, code: str = "ORCHESTRATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class SessionNotStartedError(OrchestrationError):
    """Raised when a session is resumed before it was started."""

    def __init__(self, operation: str = "respond"):
        self.operation = operation
        super().__init__(
            message=f"Project not started - cannot {operation}",
            code="SESSION_NOT_STARTED",
        )


class UnknownRoleError(OrchestrationError):
    """Raised when an identifier is outside the closed role set."""

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(message=f"Unknown agent role: {role_id}", code="UNKNOWN_ROLE")


class ActionPayloadError(OrchestrationError):
    """Raised when a requested action carries unusable arguments."""

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(
            message=f"Malformed '{action}' action: {reason}",
            code="MALFORMED_ACTION",
        )

class VirlError(Exception):
    """Base exception for the Virl backend."""

    pass


class WorkspaceNotFoundError(VirlError):
    """Raised when a workspace id does not resolve to a stored workspace."""

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id
        super().__init__(f"Workspace '{workspace_id}' not found")


class InvalidOverrideError(VirlError):
    """Raised when an admin submits a limit override the engine refuses to store."""

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid override for '{field}': {value!r} (must be >= 0 or null)")


class PaymentVerificationError(VirlError):
    """Raised when a payment signature does not match."""

    pass


class GenerationFailedError(VirlError):
    """Raised when the LLM gateway call fails or returns an unusable payload."""

    pass


class PaymentAlreadyProcessedError(VirlError):
    """Raised when a payment id has already been applied to an account."""

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment '{payment_id}' has already been processed")

"""Custom exceptions for the AeroML training workflow."""


class AeroMLError(Exception):
    """Base exception for AeroML workflow errors."""

    pass


class InputError(AeroMLError):
    """Raised when operator input is missing or malformed.

    Always raised before any network call, recoverable by correcting the input.
    """

    pass


class TrainingInputError(InputError):
    """Raised when a training job cannot start because a prerequisite is missing."""

    pass


class StagingError(AeroMLError):
    """Raised when the staging store cannot satisfy a handoff."""

    pass


class StagingEntryNotFoundError(StagingError, KeyError):
    """Raised when a staging key was never written or was already consumed."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Missing prior-stage data for key {key!r}, restart from the upload stage")

    def __str__(self) -> str:
        return self.args[0]


class WizardError(AeroMLError):
    """Base exception for wizard navigation errors."""

    pass


class TransitionBlockedError(WizardError):
    """Raised when a gated forward transition is refused."""

    pass


class TrainingInProgressError(AeroMLError):
    """Raised when a training job is started while another is still active."""

    pass


class ServiceError(AeroMLError):
    """Raised when a remote collaborator fails."""

    pass


class ServiceConnectionError(ServiceError):
    """Raised when the remote service cannot be reached."""

    pass


class TrainingServiceError(ServiceError):
    """Raised when the training service answers with a non-success status."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        message = f"Training service returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ValidationServiceError(ServiceError):
    """Raised when dataset validation fails upstream."""

    pass

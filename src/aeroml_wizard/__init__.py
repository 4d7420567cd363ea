"""AeroML training wizard client."""

from .client import ApiClient
from .config import settings
from .exceptions import AeroMLError, InputError, ServiceError, StagingEntryNotFoundError, TransitionBlockedError
from .staging import StagingStore
from .training import TrainingController, TrainingSession, TrainingStatus
from .wizard import WizardStage, WizardStateMachine

__all__ = [
    "ApiClient",
    "settings",
    "StagingStore",
    "TrainingController",
    "TrainingSession",
    "TrainingStatus",
    "WizardStage",
    "WizardStateMachine",
    "AeroMLError",
    "InputError",
    "ServiceError",
    "StagingEntryNotFoundError",
    "TransitionBlockedError",
]

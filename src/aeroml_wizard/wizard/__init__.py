"""Gated training wizard: prompt, upload/validate, train, deploy."""

from .machine import ValidationService, WizardStateMachine
from .models import DeployTarget, Handoff, TrainingOverview, ValidationResult, WizardContext, WizardStage

__all__ = [
    "DeployTarget",
    "Handoff",
    "TrainingOverview",
    "ValidationResult",
    "ValidationService",
    "WizardContext",
    "WizardStage",
    "WizardStateMachine",
]

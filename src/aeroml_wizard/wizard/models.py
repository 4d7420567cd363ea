"""Data models for the training wizard."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import ApiSettings
from ..eligibility import EligibilityTier, classify
from ..tabular import DatasetSummary, TabularPayload
from ..training.models import RawPayload


class WizardStage(str, Enum):
    """Wizard stages in forward order."""

    PROMPT = "prompt"
    UPLOAD = "upload"
    VALIDATE = "validate"  # sub-phase of the upload page
    TRAIN = "train"
    DEPLOY = "deploy"

    @property
    def page(self) -> WizardStage:
        """The navigable page this stage is shown on."""
        return WizardStage.UPLOAD if self is WizardStage.VALIDATE else self


def merge_exclusions(leaky_columns: Iterable[Any], columns_to_exclude: Iterable[Any]) -> list[str]:
    """Union the two upstream exclusion lists, dropping duplicates.

    `leaky_columns` entries are objects with a `column_name`; plain strings are
    accepted too. First-seen order is kept so the wire form is deterministic.
    """
    merged: dict[str, None] = {}
    for entry in leaky_columns:
        name = entry.get("column_name") if isinstance(entry, dict) else entry
        if isinstance(name, str) and name.strip():
            merged.setdefault(name.strip(), None)
    for name in columns_to_exclude:
        if isinstance(name, str) and name.strip():
            merged.setdefault(name.strip(), None)
    return list(merged)


class ValidationResult(BaseModel):
    """Outcome of dataset validation. Read-only once produced."""

    model_config = ConfigDict(frozen=True)

    confidence_score: float = Field(ge=0, le=100)
    suggested_target_column: str = ""
    issues: tuple[str, ...] = ()
    excluded_columns: tuple[str, ...] = ()
    safe_columns: tuple[str, ...] = ()
    is_valid: bool = True
    message: str = ""
    recommendations: tuple[str, ...] = ()
    suggested_preprocessing: tuple[str, ...] = ()

    @field_validator("excluded_columns", "safe_columns")
    @classmethod
    def _dedupe(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @property
    def tier(self) -> EligibilityTier:
        return classify(self.confidence_score)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ValidationResult:
        """Build from the validation service response.

        Accepts either the full envelope (with a nested `validation` object) or the
        inner object itself.
        """
        inner = data.get("validation", data)
        if not isinstance(inner, dict):
            raise ValueError("Validation response has no validation object")

        return cls(
            confidence_score=inner.get("confidence_score", 0),
            suggested_target_column=inner.get("suggested_target_column") or "",
            issues=tuple(inner.get("potential_issues") or ()),
            excluded_columns=tuple(merge_exclusions(inner.get("leaky_columns") or (), inner.get("columns_to_exclude") or ())),
            safe_columns=tuple(inner.get("safe_columns") or ()),
            is_valid=bool(inner.get("is_valid", True)),
            message=inner.get("validation_message") or "",
            recommendations=tuple(inner.get("recommendations") or ()),
            suggested_preprocessing=tuple(inner.get("suggested_preprocessing") or ()),
        )


@dataclass(frozen=True, slots=True)
class Handoff:
    """Opaque keys passed through navigation from the upload to the training page."""

    data_key: str
    raw_key: str

    def as_query(self) -> dict[str, str]:
        return {"dataKey": self.data_key, "rawKey": self.raw_key}

    @classmethod
    def from_query(cls, params: dict[str, str]) -> Handoff:
        return cls(data_key=params.get("dataKey", ""), raw_key=params.get("rawKey", ""))


@dataclass(frozen=True, slots=True)
class DeployTarget:
    """What downstream views need once training has completed."""

    session_id: str
    user_id: str
    model_report_url: str
    playground_url: str
    model_info_url: str


def build_deploy_target(api: ApiSettings, session_id: str, user_id: str) -> DeployTarget:
    """Links for the model report and deployment views."""
    info_path = api.model_info_path.format(session_id=session_id)
    return DeployTarget(
        session_id=session_id,
        user_id=user_id,
        model_report_url=f"/model-report?{urlencode({'session_id': session_id})}",
        playground_url=f"/playground?{urlencode({'session_id': session_id, 'user_id': user_id})}",
        model_info_url=f"{api.url(info_path)}?{urlencode({'user_id': user_id})}",
    )


@dataclass(frozen=True, slots=True)
class TrainingOverview:
    """Summary shown above the live training log."""

    summary: str
    model_name: str
    dataset_size: int
    total_epochs: int


@dataclass
class WizardContext:
    """Everything the wizard holds for one traversal."""

    stage: WizardStage = WizardStage.PROMPT
    prompt: str = ""
    dataset: TabularPayload | None = None
    validation: ValidationResult | None = None
    target_column: str | None = None
    raw_payload: RawPayload | None = None

    @property
    def dataset_summary(self) -> DatasetSummary | None:
        return self.dataset.summary if self.dataset else None

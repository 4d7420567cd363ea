"""Wizard state machine sequencing prompt, dataset upload/validation, training and deployment."""

import logging
from typing import Any, Protocol

from ..config import ApiSettings, settings
from ..eligibility import EligibilityTier, may_proceed
from ..exceptions import InputError, TransitionBlockedError, WizardError
from ..observability import bind_workflow_context, clear_workflow_context, get_workflow_logger
from ..staging import StagingStore
from ..tabular import DatasetSummary, TabularPayload, parse_tabular
from ..training import TrainingController, TrainingRequest, TrainingSession, TrainingStatus
from ..training.models import RawPayload
from .models import DeployTarget, Handoff, TrainingOverview, ValidationResult, WizardContext, WizardStage, build_deploy_target

logger = logging.getLogger(__name__)

MIN_EPOCHS = 10
MAX_EPOCHS = 50
ROWS_PER_EPOCH = 1000


class ValidationService(Protocol):
    async def validate_dataset(self, filename: str, content: bytes, prompt: str) -> ValidationResult: ...


class WizardStateMachine:
    """Gated, multi-stage workflow for one model.

    PROMPT -> UPLOAD (-> VALIDATE) -> TRAIN -> DEPLOY. Every forward step has its own
    predicate, see `can_advance()`. Going back is always allowed and keeps what was
    already entered.

    Leaving the upload page stages its data in the staging store and returns a
    `Handoff`; the training page consumes it with `enter_training()`.
    """

    def __init__(
        self,
        validation_service: ValidationService,
        controller: TrainingController,
        *,
        staging: StagingStore | None = None,
        user_id: str | None = None,
        api_settings: ApiSettings | None = None,
    ):
        self.validation_service = validation_service
        self.controller = controller
        self.staging = staging or StagingStore()
        self.user_id = user_id
        self.api = api_settings or settings.api
        self.context = WizardContext()
        bind_workflow_context(self.context.stage.value)

    @property
    def stage(self) -> WizardStage:
        return self.context.stage

    @property
    def session(self) -> TrainingSession:
        return self.controller.session

    @property
    def tier(self) -> EligibilityTier | None:
        """Eligibility of the current validation, recomputed on every access."""
        return self.context.validation.tier if self.context.validation else None

    # --- Predicates ---

    def can_advance(self, proceed_anyway: bool = False) -> bool:
        """Whether the forward transition out of the current stage is allowed."""
        stage = self.context.stage
        if stage == WizardStage.PROMPT:
            return bool(self.context.prompt.strip())
        if stage == WizardStage.UPLOAD:
            return self.context.dataset is not None
        if stage == WizardStage.VALIDATE:
            tier = self.tier
            return tier is not None and may_proceed(tier, proceed_anyway)
        if stage == WizardStage.TRAIN:
            session = self.controller.session
            return session.status == TrainingStatus.COMPLETED and session.id is not None
        return False

    # --- Prompt ---

    def submit_prompt(self, text: str) -> WizardStage:
        """Store the prompt and move to the upload page."""
        self._require(WizardStage.PROMPT)
        if not text or not text.strip():
            raise InputError("Describe what your model should do before continuing")
        self.context.prompt = text.strip()
        # Returning to the upload page restores its previous sub-phase.
        self._move_to(WizardStage.VALIDATE if self.context.validation else WizardStage.UPLOAD)
        return self.context.stage

    # --- Upload / validate ---

    def load_dataset(self, filename: str, content: bytes) -> TabularPayload:
        """Parse an uploaded file and hold it for preview.

        A new file replaces any previous dataset, validation and training session.

        Raises:
            InputError: The file could not be parsed.
        """
        self._require_page(WizardStage.UPLOAD)
        dataset = parse_tabular(filename, content)

        self.controller.reset()
        self.context.dataset = dataset
        self.context.raw_payload = RawPayload(filename=dataset.summary.filename, content=bytes(content))
        self.context.validation = None
        self.context.target_column = None
        self._move_to(WizardStage.UPLOAD)
        logger.info(f"Loaded dataset {dataset.summary.filename}: {dataset.summary.rows} rows, {dataset.summary.columns} columns")
        return dataset

    async def validate(self) -> ValidationResult:
        """Run validation on the loaded dataset and enter the validate sub-phase.

        Raises:
            TransitionBlockedError: No dataset is loaded.
            ValidationServiceError: The validation service failed; the wizard stays put.
        """
        self._require(WizardStage.UPLOAD)
        dataset, raw = self.context.dataset, self.context.raw_payload
        if dataset is None or raw is None:
            raise TransitionBlockedError("Upload a dataset before validating it")

        result = await self.validation_service.validate_dataset(raw.filename, raw.content, self.context.prompt)

        self.context.validation = result
        suggested = result.suggested_target_column
        self.context.target_column = suggested if suggested in dataset.headers else None
        self._move_to(WizardStage.VALIDATE)
        get_workflow_logger().info(
            "dataset_validated",
            confidence_score=result.confidence_score,
            tier=result.tier.value,
            excluded_columns=len(result.excluded_columns),
        )
        return result

    def select_target(self, column: str) -> None:
        """Choose the column the model should predict."""
        dataset = self.context.dataset
        if dataset is None:
            raise TransitionBlockedError("Upload a dataset before choosing a target column")
        if column not in dataset.headers:
            raise InputError(f"Unknown column '{column}'")
        self.context.target_column = column

    def revalidate(self) -> None:
        """Discard validation and training results, keeping the parsed dataset."""
        if self.context.dataset is None:
            raise TransitionBlockedError("Upload a dataset before validating it")
        self.controller.reset()
        self.context.validation = None
        self.context.target_column = None
        self._move_to(WizardStage.UPLOAD)

    def restart_upload(self) -> None:
        """Drop the dataset entirely and start the upload page over."""
        self.controller.reset()
        self.context.dataset = None
        self.context.raw_payload = None
        self.context.validation = None
        self.context.target_column = None
        self._move_to(WizardStage.UPLOAD)

    def advance_to_training(self, proceed_anyway: bool = False) -> Handoff:
        """Leave the upload page, staging its data for the training page.

        Raises:
            TransitionBlockedError: Not validated, not eligible, or an override is needed.
        """
        self._require(WizardStage.VALIDATE)
        validation, dataset, raw = self.context.validation, self.context.dataset, self.context.raw_payload
        if validation is None or dataset is None or raw is None:
            raise TransitionBlockedError("Validate the dataset before training")

        tier = validation.tier
        if not may_proceed(tier, proceed_anyway):
            if tier == EligibilityTier.NOT_ELIGIBLE:
                raise TransitionBlockedError(
                    f"Confidence score {validation.confidence_score:g} is too low to train, upload a different dataset"
                )
            raise TransitionBlockedError(f"Confidence score {validation.confidence_score:g} requires confirming 'proceed anyway'")

        data_key = self.staging.put(
            {
                "prompt": self.context.prompt,
                "dataset": {
                    "summary": dataset.summary.to_dict(),
                    "headers": list(dataset.headers),
                    "rows": dataset.rows,
                },
                "validation": validation.model_dump(mode="json"),
                "target_column": self.context.target_column,
                "raw_filename": raw.filename,
            }
        )
        raw_key = self.staging.put_raw(raw.content)
        get_workflow_logger().info("upload_staged", tier=tier.value, proceed_anyway=proceed_anyway)
        return Handoff(data_key=data_key, raw_key=raw_key)

    # --- Train ---

    def enter_training(self, handoff: Handoff) -> WizardContext:
        """Consume a handoff and restore the training page state from it.

        Raises:
            StagingEntryNotFoundError: The data is missing; restart from the upload stage.
        """
        staged: dict[str, Any] = self.staging.take(handoff.data_key)
        raw = self.staging.take_raw(handoff.raw_key)

        dataset = staged["dataset"]
        self.context.prompt = staged["prompt"]
        self.context.dataset = TabularPayload(
            summary=DatasetSummary.from_dict(dataset["summary"]),
            headers=list(dataset["headers"]),
            rows=list(dataset["rows"]),
        )
        self.context.validation = ValidationResult.model_validate(staged["validation"])
        self.context.target_column = staged.get("target_column")
        self.context.raw_payload = RawPayload(filename=staged["raw_filename"], content=raw)
        self._move_to(WizardStage.TRAIN)
        return self.context

    def training_overview(self) -> TrainingOverview:
        """Headline facts about the job shown above the live log."""
        summary = self.context.dataset_summary
        if summary is None:
            raise TransitionBlockedError("No dataset is loaded")
        stem = summary.filename.split(".")[0]
        return TrainingOverview(
            summary=f"Training a machine learning model on {summary.filename} with {summary.rows:,} samples for: {self.context.prompt}",
            model_name=f"AeroML-{stem}",
            dataset_size=summary.rows,
            total_epochs=min(MAX_EPOCHS, max(MIN_EPOCHS, summary.rows // ROWS_PER_EPOCH)),
        )

    async def start_training(self) -> TrainingSession:
        """Start (or restart) the training job and wait for its terminal status.

        Raises:
            TrainingInputError: Not signed in, no target column, or no dataset.
            TrainingInProgressError: A job is already running.
        """
        self._require(WizardStage.TRAIN)
        validation = self.context.validation
        request = TrainingRequest(
            payload=self.context.raw_payload,
            user_id=self.user_id,
            target_column=self.context.target_column,
            excluded_columns=validation.excluded_columns if validation else (),
        )
        session = await self.controller.start(request)
        if session.status == TrainingStatus.FAILED:
            logger.warning(f"Training ended without a model: {session.failure_message}")
        return session

    async def retrain(self) -> TrainingSession:
        """Run a fresh job with the same inputs after the previous one ended."""
        return await self.start_training()

    def cancel_training(self) -> bool:
        return self.controller.cancel()

    def advance_to_deploy(self) -> DeployTarget:
        """Unlock the deployment views once training has completed.

        Raises:
            TransitionBlockedError: Training has not completed with a session id.
        """
        self._require(WizardStage.TRAIN)
        if not self.can_advance():
            raise TransitionBlockedError("Training must complete before the model can be deployed")
        session = self.controller.session
        target = build_deploy_target(self.api, session.id, self.user_id or "")
        self._move_to(WizardStage.DEPLOY)
        return target

    # --- Navigation ---

    def back(self) -> WizardStage:
        """Go to the previous page, keeping everything already entered."""
        stage = self.context.stage
        if stage == WizardStage.DEPLOY:
            previous = WizardStage.TRAIN
        elif stage == WizardStage.TRAIN:
            previous = WizardStage.VALIDATE if self.context.validation else WizardStage.UPLOAD
        else:
            previous = WizardStage.PROMPT
        self._move_to(previous)
        return previous

    def close(self) -> None:
        """Tear down the traversal, dropping anything still staged."""
        self.controller.reset()
        self.staging.clear()
        clear_workflow_context()

    # --- Internals ---

    def _require(self, stage: WizardStage) -> None:
        if self.context.stage != stage:
            raise WizardError(f"Only available in the {stage.value} stage (current: {self.context.stage.value})")

    def _require_page(self, page: WizardStage) -> None:
        if self.context.stage.page != page:
            raise WizardError(f"Only available on the {page.value} page (current: {self.context.stage.value})")

    def _move_to(self, stage: WizardStage) -> None:
        if stage == self.context.stage:
            return
        previous = self.context.stage
        self.context.stage = stage
        bind_workflow_context(stage.value, self.controller.session.id)
        logger.info(f"Wizard moved from {previous.value} to {stage.value}")

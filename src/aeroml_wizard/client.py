"""HTTP client for the model-training backend.

Two collaborators are consumed:
- dataset validation (plain request/response),
- training (a long-lived streaming response of newline-delimited output).

The training stream is exposed as an async context manager yielding raw byte chunks,
so the caller decides how to decode them and how long to wait.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from pydantic import ValidationError

from .config import ApiSettings, TrainingSettings, settings
from .exceptions import ServiceConnectionError, TrainingServiceError, ValidationServiceError
from .training.models import RawPayload
from .wizard.models import DeployTarget, ValidationResult, build_deploy_target

logger = logging.getLogger(__name__)

MAX_ERROR_DETAIL = 500


class ApiClient:
    """Talks to the model-training backend over HTTP.

    Usage:
        async with ApiClient() as api:
            result = await api.validate_dataset("data.csv", content, prompt)
            async with api.stream_training(payload, user_id, "churn") as chunks:
                async for chunk in chunks:
                    ...
    """

    def __init__(
        self,
        api_settings: ApiSettings | None = None,
        training_settings: TrainingSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api = api_settings or settings.api
        self.training = training_settings or settings.training
        headers = {"Accept": "application/json"}
        token = self.api.get_api_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self.api.request_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def validate_dataset(self, filename: str, content: bytes, prompt: str) -> ValidationResult:
        """Submit a dataset and prompt for validation.

        Raises:
            ValidationServiceError: Transport failure, non-success status, or malformed body.
        """
        url = self.api.url(self.api.validate_path)
        logger.info(f"Validating dataset {filename} ({len(content)} bytes)")
        try:
            response = await self._client.post(
                url,
                files={"file": (filename, content, "application/octet-stream")},
                data={"prompt": prompt},
            )
        except httpx.HTTPError as e:
            raise ValidationServiceError(f"Validation request failed: {e}") from e

        if not response.is_success:
            raise ValidationServiceError(f"Validation service returned HTTP {response.status_code}: {response.text[:MAX_ERROR_DETAIL]}")

        try:
            return ValidationResult.from_response(response.json())
        except (ValueError, ValidationError) as e:
            raise ValidationServiceError(f"Malformed validation response: {e}") from e

    @asynccontextmanager
    async def stream_training(
        self,
        payload: RawPayload,
        user_id: str,
        target_column: str,
        excluded_columns: str | None = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open the training stream and yield its body as byte chunks.

        Raises:
            ServiceConnectionError: The service could not be reached or the stream broke.
            TrainingServiceError: The service answered with a non-success status.
        """
        url = self.api.url(self.api.train_path)
        form = {"user_id": user_id, "target_column": target_column}
        if excluded_columns:
            form["columns_to_exclude"] = excluded_columns

        # Total wait is bounded by the caller; only connecting has its own limit here.
        timeout = httpx.Timeout(None, connect=self.training.connect_timeout)
        try:
            async with self._client.stream(
                "POST",
                url,
                files={"file": (payload.filename, payload.content, "application/octet-stream")},
                data=form,
                timeout=timeout,
                headers={"Accept": "text/plain, application/x-ndjson"},
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    detail = body.decode("utf-8", errors="replace")[:MAX_ERROR_DETAIL]
                    raise TrainingServiceError(response.status_code, detail)
                logger.info(f"Training stream opened for target '{target_column}'")
                yield response.aiter_bytes()
        except httpx.HTTPError as e:
            raise ServiceConnectionError(f"Training stream failed: {e}") from e

    def deploy_target(self, session_id: str, user_id: str) -> DeployTarget:
        """Links for the model report and deployment views."""
        return build_deploy_target(self.api, session_id, user_id)


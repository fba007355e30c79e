"""Workflow orchestrator.

Objective:
    Coordinate the end-to-end workflow:
    1) Validate the classify request (provider, credential, messages)
    2) Fetch the most recent messages from the mailbox
    3) Normalize raw payloads into messages
    4) Short-circuit when there is nothing to classify
    5) Classify the batch
    6) Return a result suitable for CLI/web API

Responsibilities:
    - Compose the core components (mailbox client, normalizer, batch
      classifier).
    - Translate every failure into the error taxonomy of
      :mod:`inbox_classifier.errors` and return it as a structured failed
      result. No raw SDK or HTTP exception crosses this boundary.

High-level call tree:
    - :class:`PipelineOrchestrator`
        - :meth:`PipelineOrchestrator.run`
            - :meth:`PipelineOrchestrator.build_request`
            - :meth:`PipelineOrchestrator.fetch_messages`
                - :meth:`GmailClient.fetch_recent`
                - :meth:`MessageNormalizer.normalize_all`
            - :meth:`PipelineOrchestrator.classify_messages`
                - :meth:`PipelineOrchestrator.classify`
                    - :meth:`BatchClassifier.classify_batch`
        - :meth:`PipelineOrchestrator.validate_classify_request`

Operational notes:
    - The orchestrator does not persist anything. Callers decide whether to
      store results (see :mod:`inbox_classifier.storage`).
"""

import logging
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from .batch import BatchClassifier
from .classifier import INVALID_PROVIDER_MESSAGE
from .config import AIProvider, Settings, get_settings
from .errors import PipelineError, ValidationError, translate_mailbox_exception
from .gmail_client import GmailClient, MailboxClient
from .models import (
    BatchResult,
    ClassificationRequest,
    FetchResult,
    Message,
    PipelineResult,
)
from .normalizer import MessageNormalizer

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Orchestrates the fetch-and-classify workflow.

    This class is intentionally "glue" code: it connects the mailbox client,
    normalizer and batch classifier without embedding classification rules.

    Attributes:
        settings: Application settings.
        mailbox: Mailbox client returning raw payloads.
        normalizer: Raw payload normalizer.
        batch_classifier: Batch classifier.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mailbox: Optional[MailboxClient] = None,
        batch_classifier: Optional[BatchClassifier] = None,
        normalizer: Optional[MessageNormalizer] = None,
    ) -> None:
        """
        Initialize orchestrator with all components.

        Components can be injected for testing; defaults are built from
        settings.

        Args:
            settings: Application settings (loads from env if None).
            mailbox: Mailbox client (Gmail if None).
            batch_classifier: Batch classifier.
            normalizer: Payload normalizer.
        """
        self.settings = settings or get_settings()
        self.mailbox = mailbox or GmailClient()
        self.normalizer = normalizer or MessageNormalizer()
        self.batch_classifier = batch_classifier or BatchClassifier(self.settings)

    def build_request(
        self,
        provider: Any,
        credential: Any,
        messages: Sequence[Any] = (),
    ) -> ClassificationRequest:
        """
        Validate classify inputs and build a request.

        Args:
            provider: Provider identifier; the configured default if empty.
            credential: API key for the provider.
            messages: Messages or message dicts.

        Returns:
            ClassificationRequest: Validated request.

        Raises:
            ValidationError: If any input is malformed.
        """
        try:
            selected = AIProvider(provider or self.settings.default_provider)
        except (ValueError, TypeError) as e:
            raise ValidationError(INVALID_PROVIDER_MESSAGE) from e

        if not credential or not isinstance(credential, str):
            raise ValidationError(f"{selected.display_name} API key is required")

        try:
            parsed = [
                item if isinstance(item, Message) else Message.model_validate(item)
                for item in messages
            ]
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid message in emails array: {e.error_count()} error(s)") from e

        ids = [message.id for message in parsed]
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate message ids in emails array")

        return ClassificationRequest(provider=selected, credential=credential, messages=parsed)

    def validate_classify_request(self, payload: Any) -> ClassificationRequest:
        """
        Validate a classify request body.

        Expected body::

            {"messages": [...], "provider": "openai", "openaiKey": "sk-..."}

        ``emails`` is accepted for ``messages``, and a generic ``credential``
        key for ``<provider>Key``.

        Args:
            payload: Decoded JSON body.

        Returns:
            ClassificationRequest: Validated request.

        Raises:
            ValidationError: If the body is malformed.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Invalid request body")

        messages = payload.get("messages", payload.get("emails"))
        if not isinstance(messages, list):
            raise ValidationError("Invalid emails array")

        provider = payload.get("provider") or self.settings.default_provider.value
        credential = None
        if isinstance(provider, str):
            credential = payload.get(f"{provider}Key")
        if credential is None:
            credential = payload.get("credential")

        return self.build_request(provider, credential, messages)

    def fetch_messages(
        self, access_token: Optional[str], limit: Optional[int] = None
    ) -> FetchResult:
        """
        Fetch and normalize the most recent messages.

        Args:
            access_token: Mailbox OAuth access token.
            limit: Maximum messages (``settings.fetch_limit`` if None).

        Returns:
            FetchResult: Messages, or a failed result with a status code.
        """
        if not access_token:
            return FetchResult(
                success=False,
                error="Unauthorized: No valid session found",
                status_code=401,
            )

        batch_size = limit or self.settings.fetch_limit
        logger.info(f"Fetching up to {batch_size} emails")

        try:
            raws = self.mailbox.fetch_recent(access_token, batch_size)
        except Exception as e:
            error = translate_mailbox_exception(e)
            logger.error(
                "Error fetching emails (status=%s, kind=%s): %s",
                error.status_code,
                error.kind.value,
                e,
            )
            return FetchResult(success=False, error=error.message, status_code=error.status_code)

        messages = self.normalizer.normalize_all(raws)
        logger.info(f"Fetched {len(messages)} emails")
        return FetchResult(messages=messages)

    def classify(
        self, request: ClassificationRequest, timeout: Optional[float] = None
    ) -> BatchResult:
        """
        Classify a validated request.

        Args:
            request: Validated request.
            timeout: Batch deadline in seconds.

        Returns:
            BatchResult: Batch result.

        Raises:
            PipelineError: If the batch fails as a whole.
        """
        logger.info(
            f"Classifying {len(request.messages)} emails with {request.provider.display_name}"
        )
        return self.batch_classifier.classify_batch(
            request.messages,
            request.provider,
            request.credential,
            timeout=timeout,
        )

    def classify_messages(
        self,
        request: Union[ClassificationRequest, dict[str, Any]],
        timeout: Optional[float] = None,
    ) -> PipelineResult:
        """
        Classify messages and return a structured result.

        Args:
            request: Validated request or raw request body.
            timeout: Batch deadline in seconds.

        Returns:
            PipelineResult: Classified messages, or a failed result.
        """
        try:
            if not isinstance(request, ClassificationRequest):
                request = self.validate_classify_request(request)
            batch = self.classify(request, timeout=timeout)
        except PipelineError as e:
            return self._failure(e)
        except Exception:
            logger.exception("Unexpected classification error")
            return PipelineResult(
                success=False,
                error="Failed to classify emails. Please try again.",
                status_code=500,
            )

        return PipelineResult(
            classified=batch.classified,
            partial_failure_count=batch.partial_failure_count,
        )

    def run(
        self,
        access_token: Optional[str],
        provider: Any,
        credential: Any,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> PipelineResult:
        """Run the fetch-and-classify workflow.

        The classify inputs are validated before anything is fetched. When
        the mailbox has no messages the classifier is not invoked.

        Args:
            access_token: Mailbox OAuth access token.
            provider: LLM provider identifier.
            credential: API key for the provider.
            limit: Maximum messages to fetch.
            timeout: Classification deadline in seconds.

        Returns:
            PipelineResult: Classified messages, or a failed result.
        """
        try:
            request = self.build_request(provider, credential)
        except ValidationError as e:
            return self._failure(e)

        fetched = self.fetch_messages(access_token, limit=limit)
        if not fetched.success:
            return PipelineResult(
                success=False, error=fetched.error, status_code=fetched.status_code
            )

        if not fetched.messages:
            logger.info("No emails to classify")
            return PipelineResult()

        request = request.model_copy(update={"messages": fetched.messages})
        return self.classify_messages(request, timeout=timeout)

    def _failure(self, error: PipelineError) -> PipelineResult:
        logger.warning(
            "Pipeline failed (status=%s, provider=%s): %s",
            error.status_code,
            error.provider,
            error.message,
        )
        return PipelineResult(success=False, error=error.message, status_code=error.status_code)

"""Batch classification with per-message failure isolation.

Objective:
    Classify every message of a batch, making sure one failing provider call
    cannot abort the others. Every input message yields exactly one
    :class:`inbox_classifier.models.ClassifiedMessage`, in input order.

Failure policy:
    - Setup failures (unknown provider, missing credential, SDK client
      construction) raise before any provider call is made.
    - A per-message provider failure assigns General, increments
      ``partial_failure_count`` and is recorded in ``failures``.
    - Unparseable model text assigns General and is recorded in
      ``unparsed_ids``; it is not a failure.
    - A rejected credential fails every call the same way, so it aborts the
      batch: remaining calls are cancelled and
      :class:`inbox_classifier.errors.CredentialError` propagates.
    - When the deadline expires, unfinished calls are abandoned and their
      messages recorded as ``timeout`` failures. Nothing is retried.

High-level call tree:
    - :class:`BatchClassifier`
        - :meth:`BatchClassifier.classify_batch`
            - :meth:`EmailClassifier.open_provider`
            - :meth:`BatchClassifier._classify_one` (worker threads)
                - :meth:`EmailClassifier.classify_with`
                - :func:`inbox_classifier.parser.parse_response`
"""

import logging
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import NamedTuple, Optional, Sequence, Union

from .classifier import EmailClassifier
from .config import AIProvider, Settings
from .errors import CredentialError, ProviderError, ProviderErrorKind
from .models import BatchResult, ClassificationFailure, ClassifiedMessage, Message
from .parser import parse_response
from .providers import ChatProvider
from .taxonomy import FALLBACK_CATEGORY, EmailCategory

logger = logging.getLogger(__name__)


class _Outcome(NamedTuple):
    category: EmailCategory
    failure: Optional[ClassificationFailure] = None
    unparsed: bool = False


class BatchClassifier:
    """
    Classifies batches of messages with bounded concurrency.

    Attributes:
        settings: Application settings (concurrency cap, default deadline).
        classifier: Adapter used for each provider call.
    """

    def __init__(
        self,
        settings: Settings,
        classifier: Optional[EmailClassifier] = None,
    ) -> None:
        self.settings = settings
        self.classifier = classifier or EmailClassifier(settings)

    def _classify_one(self, chat: ChatProvider, message: Message) -> _Outcome:
        """Classify one message, converting failures into a fallback outcome.

        Only :class:`CredentialError` escapes, because it applies to the
        whole batch.
        """
        try:
            response_text = self.classifier.classify_with(chat, message)
        except CredentialError:
            raise
        except ProviderError as e:
            logger.warning(
                "Classification failed; falling back to %s (email_id=%s, error=%s)",
                FALLBACK_CATEGORY.value,
                message.id,
                e.message,
            )
            return _Outcome(
                FALLBACK_CATEGORY,
                failure=ClassificationFailure(
                    message_id=message.id, kind=e.kind.value, reason=e.message
                ),
            )
        except Exception as e:
            logger.exception(f"Unexpected error classifying email {message.id}")
            return _Outcome(
                FALLBACK_CATEGORY,
                failure=ClassificationFailure(
                    message_id=message.id,
                    kind=ProviderErrorKind.UNKNOWN.value,
                    reason=str(e),
                ),
            )

        parsed = parse_response(response_text)
        if not parsed.matched:
            logger.info(f"Unparseable response for email {message.id}")
        return _Outcome(parsed.category, unparsed=not parsed.matched)

    def classify_batch(
        self,
        messages: Sequence[Message],
        provider: Union[AIProvider, str],
        credential: str,
        timeout: Optional[float] = None,
    ) -> BatchResult:
        """
        Classify a batch of messages.

        Args:
            messages: Messages to classify, in display order.
            provider: Provider identifier.
            credential: API key for the provider.
            timeout: Deadline in seconds for the whole batch. Defaults to
                ``settings.classification_timeout_seconds``.

        Returns:
            BatchResult: One classified entry per message, in input order.

        Raises:
            ValidationError: If the provider or credential is invalid.
            ProviderError: If the provider client cannot be created.
            CredentialError: If the provider rejects the credential.
        """
        chat = self.classifier.open_provider(provider, credential)

        if not messages:
            return BatchResult()

        deadline = timeout if timeout is not None else self.settings.classification_timeout_seconds
        workers = min(self.settings.classification_concurrency, len(messages))
        outcomes: list[Optional[_Outcome]] = [None] * len(messages)

        logger.info(
            f"Starting classification of {len(messages)} emails "
            f"(provider={chat.provider.value}, concurrency={workers})"
        )

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="classify")
        try:
            futures: dict[Future, int] = {
                executor.submit(self._classify_one, chat, message): index
                for index, message in enumerate(messages)
            }
            try:
                for future in as_completed(futures, timeout=deadline):
                    outcomes[futures[future]] = future.result()
            except FuturesTimeoutError:
                logger.warning(f"Classification deadline of {deadline}s exceeded")
                for future, index in futures.items():
                    if outcomes[index] is not None:
                        continue
                    if future.done():
                        outcomes[index] = future.result()
                        continue
                    future.cancel()
                    outcomes[index] = _Outcome(
                        FALLBACK_CATEGORY,
                        failure=ClassificationFailure(
                            message_id=messages[index].id,
                            kind=ProviderErrorKind.TIMEOUT.value,
                            reason=f"Classification did not finish within {deadline}s",
                        ),
                    )
        except CredentialError:
            logger.error("Provider rejected the credential; aborting batch")
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        result = BatchResult()
        for message, outcome in zip(messages, outcomes):
            result.classified.append(ClassifiedMessage.from_message(message, outcome.category))
            if outcome.failure is not None:
                result.failures.append(outcome.failure)
            if outcome.unparsed:
                result.unparsed_ids.append(message.id)
        result.partial_failure_count = len(result.failures)

        summary = Counter(item.category.value for item in result.classified)
        logger.info(
            f"Classification summary: {dict(summary)} "
            f"(partial_failures={result.partial_failure_count}, unparsed={len(result.unparsed_ids)})"
        )
        return result

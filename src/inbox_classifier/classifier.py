"""Classification adapter.

Objective:
    Turn a :class:`inbox_classifier.models.Message` into the raw text reply
    of a hosted model. Parsing that reply into a category is the job of
    :mod:`inbox_classifier.parser`; this module only renders the prompt and
    calls the provider.

Responsibilities:
    - Build the classification prompt from a template file on disk.
    - Invoke the selected :class:`inbox_classifier.providers.ChatProvider`.
    - Translate provider failures into
      :class:`inbox_classifier.errors.ProviderError` subclasses.

High-level call tree:
    - :class:`EmailClassifier`
        - :meth:`EmailClassifier.classify`
            - :meth:`EmailClassifier.open_provider`
                - :func:`inbox_classifier.providers.build_chat_provider`
            - :meth:`EmailClassifier.classify_with`
                - :meth:`EmailClassifier.build_prompt`
                    - :meth:`EmailClassifier._load_prompt_template`
                    - :meth:`EmailClassifier._render_prompt_template`
                - :meth:`ChatProvider.invoke`
                - :func:`inbox_classifier.errors.translate_provider_exception`

Operational notes:
    - The prompt lives in ``src/inbox_classifier/prompts/classification_prompt.md``.
    - Sampling is fixed at a low temperature because the parser expects a
      single-word reply.
"""

import logging
import re
from pathlib import Path
from typing import Union

from .config import AIProvider, Settings
from .errors import ProviderError, ValidationError, translate_provider_exception
from .models import Message
from .providers import ChatProvider, build_chat_provider
from .sanitizer import collapse_whitespace, truncate
from .taxonomy import CATEGORIES, CATEGORY_DESCRIPTIONS, category_labels

logger = logging.getLogger(__name__)

# Longest preview embedded in a prompt
MAX_PREVIEW_CHARS = 1200

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

INVALID_PROVIDER_MESSAGE = 'Invalid provider. Use "openai", "gemini" or "groq"'

FALLBACK_PROMPT_TEMPLATE = """Classify this email into ONE category.

Email:
From: {sender}
Subject: {subject}
Content: {preview}

Categories:
{category_definitions}

Output ONLY the category name ({categories}).
No explanation. One word only.

Category:"""


class EmailClassifier:
    """
    Renders classification prompts and calls LLM providers.

    The classifier holds no credentials. Each call receives the credential
    explicitly, so one instance can safely serve concurrent batches.

    Attributes:
        settings: Application settings.
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize classifier with settings.

        Args:
            settings: Application settings (models, temperature).
        """
        self.settings = settings

    def _load_prompt_template(self) -> str:
        """Load the prompt template from disk.

        The template contains placeholders for:
        - message fields (sender, subject, preview)
        - category definitions and the label list

        Returns:
            str: Prompt template text.
        """
        prompt_path = (
            Path(__file__).resolve().parent / "prompts" / "classification_prompt.md"
        )
        return prompt_path.read_text(encoding="utf-8")

    def _render_prompt_template(self, template: str, message: Message) -> str:
        """Render the template using safe placeholder substitution.

        ``str.format`` is not used because message content can contain
        arbitrary braces.

        Args:
            template: Raw template text.
            message: Message being classified.

        Returns:
            str: Rendered prompt.
        """
        definitions = "\n".join(
            f"- {category.value}: {CATEGORY_DESCRIPTIONS[category]}"
            for category in CATEGORIES
        )
        labels = category_labels()
        replacements = {
            "category_definitions": definitions,
            "categories": ", ".join(labels[:-1]) + f", or {labels[-1]}",
            "sender": message.sender,
            "subject": message.subject,
            "preview": truncate(collapse_whitespace(message.preview), MAX_PREVIEW_CHARS),
        }

        # Single pass: substituted values are never re-scanned.
        return _PLACEHOLDER.sub(
            lambda match: replacements.get(match.group(1), match.group(0)),
            template,
        )

    def build_prompt(self, message: Message) -> str:
        """
        Build the classification prompt for one message.

        Falls back to an inline template if the file cannot be loaded.

        Args:
            message: Message to classify.

        Returns:
            str: Rendered prompt.
        """
        try:
            template = self._load_prompt_template()
        except OSError as e:
            logger.warning(f"Failed to load prompt template file: {e}")
            template = FALLBACK_PROMPT_TEMPLATE
        return self._render_prompt_template(template, message)

    def open_provider(
        self, provider: Union[AIProvider, str], credential: str
    ) -> ChatProvider:
        """
        Build the chat provider for a batch.

        Args:
            provider: Provider identifier.
            credential: API key for the provider.

        Returns:
            ChatProvider: Provider client.

        Raises:
            ValidationError: If the provider is unknown or the credential is empty.
            ProviderError: If the SDK client cannot be created.
        """
        try:
            provider = AIProvider(provider)
        except (ValueError, TypeError) as e:
            raise ValidationError(INVALID_PROVIDER_MESSAGE) from e

        if not credential or not isinstance(credential, str):
            raise ValidationError(f"{provider.display_name} API key is required")

        try:
            return build_chat_provider(provider, credential, self.settings)
        except Exception as e:
            raise translate_provider_exception(e, provider.display_name) from e

    def classify_with(self, chat: ChatProvider, message: Message) -> str:
        """
        Classify one message with an already-built provider.

        Args:
            chat: Provider client.
            message: Message to classify.

        Returns:
            str: Raw model reply.

        Raises:
            ProviderError: If the provider call fails or returns no text.
        """
        prompt = self.build_prompt(message)
        provider_name = chat.provider.display_name

        try:
            response_text = chat.invoke(prompt)
        except Exception as e:
            error = translate_provider_exception(e, provider_name)
            logger.debug(
                "Provider call failed (email_id=%s, kind=%s, code=%s)",
                message.id,
                error.kind.value,
                error.underlying_code,
            )
            raise error from e

        if not isinstance(response_text, str):
            raise ProviderError(
                f"{provider_name} returned a non-text response",
                provider=provider_name,
            )

        logger.debug(f"LLM response for {message.id}: {response_text!r}")
        return response_text

    def classify(
        self,
        message: Message,
        provider: Union[AIProvider, str],
        credential: str,
    ) -> str:
        """
        Classify a single message.

        Args:
            message: Message to classify.
            provider: Provider identifier.
            credential: API key for the provider.

        Returns:
            str: Raw model reply, to be parsed by
            :func:`inbox_classifier.parser.parse_category`.

        Raises:
            ValidationError: If the provider or credential is invalid.
            ProviderError: If the provider call fails.
        """
        chat = self.open_provider(provider, credential)
        return self.classify_with(chat, message)

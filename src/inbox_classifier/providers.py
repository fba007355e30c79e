"""LLM provider clients.

Objective:
    Expose every hosted model behind one capability: given a rendered prompt,
    return the model's text. The rest of the pipeline never touches an SDK
    directly.

Variants:
    - :class:`OpenAIChatProvider`: OpenAI chat completions (``openai`` SDK).
    - :class:`GroqChatProvider`: Groq chat completions (``groq`` SDK, same
      request shape as OpenAI).
    - :class:`GeminiChatProvider`: Gemini ``generate_content`` (``google-genai``).

High-level call tree:
    - :func:`build_chat_provider` -> selects a variant from :data:`PROVIDER_CLASSES`
        - :meth:`ChatProvider.invoke`

Operational notes:
    - Each instance owns its SDK client and credential. Instances are created
      per batch and discarded afterwards; nothing here caches credentials.
    - SDK clients are built with retries disabled and a per-request timeout.
      A rate-limited call fails once and is reported; a call abandoned by the
      batch deadline ends within the request timeout.
    - SDK exceptions propagate unchanged. Translation into the error taxonomy
      happens in :mod:`inbox_classifier.classifier`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Union

from google import genai
from google.genai import types
from groq import Groq
from openai import OpenAI

from .config import AIProvider, Settings

logger = logging.getLogger(__name__)


class ChatProvider(ABC):
    """
    A promptable chat model.

    Attributes:
        provider: Provider identifier.
        model: Model id.
        temperature: Sampling temperature.
        max_tokens: Reply token cap.
        request_timeout: Timeout in seconds for one SDK request.
    """

    provider: AIProvider

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 20,
        request_timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.client = self._create_client(api_key)

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Create the SDK client for this provider."""

    @abstractmethod
    def invoke(self, prompt: str) -> str:
        """
        Send a prompt and return the model's text.

        Args:
            prompt: Fully rendered prompt.

        Returns:
            str: Raw reply text (may be empty).
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


class OpenAIChatProvider(ChatProvider):
    """OpenAI chat completions."""

    provider = AIProvider.OPENAI

    def _create_client(self, api_key: str) -> Any:
        return OpenAI(api_key=api_key, max_retries=0, timeout=self.request_timeout)

    def invoke(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""


class GroqChatProvider(OpenAIChatProvider):
    """Groq chat completions. The request shape matches OpenAI's."""

    provider = AIProvider.GROQ

    def _create_client(self, api_key: str) -> Any:
        return Groq(api_key=api_key, max_retries=0, timeout=self.request_timeout)


class GeminiChatProvider(ChatProvider):
    """Google Gemini via the ``google-genai`` client."""

    provider = AIProvider.GEMINI

    def _create_client(self, api_key: str) -> Any:
        # HttpOptions.timeout is in milliseconds
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.request_timeout * 1000)),
        )

    def invoke(self, prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                max_output_tokens=self.max_tokens,
            ),
        )
        return response.text or ""


PROVIDER_CLASSES: dict[AIProvider, type[ChatProvider]] = {
    AIProvider.OPENAI: OpenAIChatProvider,
    AIProvider.GEMINI: GeminiChatProvider,
    AIProvider.GROQ: GroqChatProvider,
}


def build_chat_provider(
    provider: Union[AIProvider, str],
    credential: str,
    settings: Settings,
) -> ChatProvider:
    """
    Build the chat provider selected by ``provider``.

    Selection is a plain lookup on the provider enum.

    Args:
        provider: Provider identifier.
        credential: API key for that provider.
        settings: Settings supplying model id, sampling parameters and the
            request timeout.

    Returns:
        ChatProvider: Ready-to-use provider.

    Raises:
        ValueError: If ``provider`` is not a known identifier.
    """
    provider = AIProvider(provider)
    provider_class = PROVIDER_CLASSES[provider]
    model = settings.model_for(provider)

    logger.debug(f"Using {provider.display_name} model {model} for classification")
    return provider_class(
        api_key=credential,
        model=model,
        temperature=settings.classification_temperature,
        max_tokens=settings.classification_max_tokens,
        request_timeout=settings.provider_request_timeout_seconds,
    )

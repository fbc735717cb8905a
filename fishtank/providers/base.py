"""Abstract bases for chat-completion and transcription providers."""

from abc import ABC, abstractmethod

from fishtank.models import ChatResponse, Transcript

Message = dict[str, str]


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ChatProvider(ABC):
    """Abstract base for all chat-completion providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        *,
        json_mode: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ChatResponse:
        """Run a chat completion.

        Args:
            messages: Ordered role/content dicts. A leading "system" message
                is passed the way the SDK expects it.
            json_mode: Ask the model for a single JSON object.
            max_tokens: Override the configured max_tokens.
            temperature: Override the configured temperature.

        Returns:
            ChatResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...


class Transcriber(ABC):
    """Abstract base for speech-to-text providers."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str) -> Transcript:
        """Convert audio bytes to text with word-level timestamps.

        Raises:
            ProviderError: On API failure or timeout. Callers must not
                substitute a default transcript.
        """
        ...


def split_system(messages: list[Message]) -> tuple[str | None, list[Message]]:
    """Separate a leading system message for SDKs that take it out of band."""
    if messages and messages[0].get("role") == "system":
        return messages[0]["content"], messages[1:]
    return None, messages

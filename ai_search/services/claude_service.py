"""
Claude API service used as the completion backend of the extractor.

Wraps the Anthropic SDK behind a single ``complete`` call and converts
SDK failures into ``CompletionServiceError`` so callers only handle one
exception type.
"""

import logging
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from ai_search.config import Settings

logger = logging.getLogger(__name__)


class CompletionServiceError(Exception):
    """Raised when the completion backend cannot produce an answer."""

    def __init__(self, message: str, kind: str = "status") -> None:
        super().__init__(message)
        self.kind = kind


class ClaudeService:
    """Service for interacting with the Claude API."""

    def __init__(self, settings: Settings, client: Optional[AsyncAnthropic] = None) -> None:
        """
        Initialize the Claude service.

        Args:
            settings: Application settings containing API configuration.
            client: Optional pre-built client, mainly for tests.
        """
        self.client = client or AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.claude_timeout_seconds,
            max_retries=settings.claude_max_retries,
        )
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens
        self.temperature = settings.claude_temperature

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Send a single-turn prompt to Claude and return the text reply.

        Args:
            prompt: User message content.
            system: Optional system prompt.

        Returns:
            Raw text of the first content block.

        Raises:
            CompletionServiceError: On timeouts, connection problems,
                rate limiting, API errors or an empty reply.
        """
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            message = await self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            logger.error("Claude request timed out: %s", e)
            raise CompletionServiceError("Completion service timed out", kind="timeout") from e
        except anthropic.APIConnectionError as e:
            logger.error("Failed to connect to Anthropic API: %s", e)
            raise CompletionServiceError(
                "Failed to connect to completion service", kind="connection"
            ) from e
        except anthropic.RateLimitError as e:
            logger.error("Anthropic rate limit hit: %s", e.message)
            raise CompletionServiceError(
                "Completion service rate limit exceeded", kind="rate_limit"
            ) from e
        except anthropic.APIStatusError as e:
            logger.error("Anthropic API error: %s", e.message)
            raise CompletionServiceError(f"Claude API error: {e.message}") from e

        text_blocks = [
            block.text for block in message.content if getattr(block, "type", None) == "text"
        ]
        if not text_blocks or not text_blocks[0].strip():
            raise CompletionServiceError("No response from completion service", kind="empty_response")

        logger.debug("Claude response: %s", text_blocks[0])
        return text_blocks[0]


# Dependency injection helper for FastAPI
_claude_service: Optional[ClaudeService] = None


def get_claude_service(settings: Settings) -> ClaudeService:
    """
    Get or create the Claude service singleton.

    This allows for dependency injection in FastAPI routes while
    maintaining a single client instance.
    """
    global _claude_service
    if _claude_service is None:
        _claude_service = ClaudeService(settings)
    return _claude_service

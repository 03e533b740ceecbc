"""Token estimation for request sizing and input validation."""

from typing import Any

import tiktoken

from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)


class TokenEstimator:
    """Approximate token counter.

    tiktoken's GPT-4 encoding is a close enough approximation for Claude.
    When no encoding is available the estimate falls back to 4 characters
    per token.
    """

    def __init__(self, model_hint: str | None = "gpt-4", max_message_tokens: int = 2000):
        """Initialize the estimator.

        Args:
            model_hint: Model name used to pick a tiktoken encoding, None disables tiktoken
            max_message_tokens: Limit enforced by `validate_message_tokens`
        """
        self.max_message_tokens = max_message_tokens
        self.tokenizer: Any = None
        self._model_hint = model_hint
        self._loaded = model_hint is None

    def _get_tokenizer(self) -> Any:
        # Loaded lazily, the first load may download the encoding
        if not self._loaded:
            self._loaded = True
            try:
                self.tokenizer = tiktoken.encoding_for_model(self._model_hint)
            except Exception as e:
                logger.warning(f"tiktoken encoding unavailable, using character estimate: {e}")
                self.tokenizer = None
        return self.tokenizer

    def estimate(self, text: str) -> int:
        """Estimate token count for a piece of text."""
        tokenizer = self._get_tokenizer()
        try:
            return len(tokenizer.encode(text)) if tokenizer else len(text) // 4
        except Exception:
            return len(text) // 4

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a user message doesn't exceed the token limit.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate(message)
        if token_count > self.max_message_tokens:
            raise ValueError(
                f"Your message is too long ({token_count} tokens). "
                f"Please keep messages under {self.max_message_tokens} tokens."
            )

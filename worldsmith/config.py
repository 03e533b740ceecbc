"""Runtime settings for the agent engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PERSONA_PATH = Path(__file__).parent / "resources" / "persona.md"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class AgentSettings:
    """Settings for the conversation engine.

    Every field can be overridden through the environment, see `from_env`.
    """

    anthropic_api_key: str | None = None
    model: str = "claude-3-5-sonnet-20241022"
    temperature: float = 0.7
    max_tokens: int = 4096

    persona_path: Path = field(default_factory=lambda: DEFAULT_PERSONA_PATH)
    history_limit: int = 20
    max_model_calls: int = 25

    # Empty means the in-memory message store
    database_path: str = ""

    max_message_tokens: int = 2000
    session_timeout_minutes: int = 60

    @classmethod
    def from_env(cls) -> "AgentSettings":
        """Build settings from environment variables."""
        defaults = cls()
        persona_path = os.getenv("WORLDSMITH_PERSONA_PATH")
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("WORLDSMITH_MODEL", defaults.model),
            temperature=_env_float("WORLDSMITH_TEMPERATURE", defaults.temperature),
            max_tokens=_env_int("WORLDSMITH_MAX_TOKENS", defaults.max_tokens),
            persona_path=Path(persona_path) if persona_path else defaults.persona_path,
            history_limit=_env_int("WORLDSMITH_HISTORY_LIMIT", defaults.history_limit),
            max_model_calls=_env_int("WORLDSMITH_MAX_MODEL_CALLS", defaults.max_model_calls),
            database_path=os.getenv("WORLDSMITH_DATABASE_PATH", defaults.database_path),
            max_message_tokens=_env_int("WORLDSMITH_MAX_MESSAGE_TOKENS", defaults.max_message_tokens),
            session_timeout_minutes=_env_int(
                "WORLDSMITH_SESSION_TIMEOUT_MINUTES", defaults.session_timeout_minutes
            ),
        )

"""Exceptions raised across the turn boundary."""


class TurnError(Exception):
    """Base class for failures that end a turn with a stream_error."""


class TurnCancelledError(TurnError):
    """The turn was cancelled by the client."""

    def __init__(self, message: str = "Turn cancelled"):
        super().__init__(message)


class ToolLoopLimitError(TurnError):
    """The model kept requesting tools past the configured cap."""

    def __init__(self, max_model_calls: int):
        self.max_model_calls = max_model_calls
        super().__init__(f"Stopped after {max_model_calls} model calls without a final answer")


class SessionBusyError(TurnError):
    """A turn is already running for the session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"A turn is already in progress for session {session_id}")

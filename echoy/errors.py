"""Exception types shared by the chat core."""


class EchoyError(Exception):
    """Base exception for Echoy"""

    pass


class StorageError(EchoyError):
    """The history backing store could not allocate or write"""

    pass


class NotFoundError(EchoyError):
    """Unknown session identifier"""

    pass


class HistoryWriteError(EchoyError):
    """
    A message could not be persisted and the turn was abandoned.

    `reply` is set when generation succeeded but the assistant message could
    not be saved, so callers can tell that case apart from a failed generation.
    """

    def __init__(self, message: str, reply=None):
        super().__init__(message)
        self.reply = reply


class GenerationError(EchoyError):
    """The generation backend call failed"""

    pass


class StreamError(EchoyError):
    """The backend failed mid-stream"""

    pass


class InputError(EchoyError):
    """The input source failed; ends the session"""

    pass


class ConfigError(EchoyError):
    """Invalid or incomplete configuration"""

    pass


class Cancelled(EchoyError):
    """The operation's context was cancelled or its deadline passed"""

    pass

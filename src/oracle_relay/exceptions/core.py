class RelayError(Exception):
    pass

class ConfigError(RelayError):
    pass


class RecoverableError(RelayError):
    """Failure scoped to one asset or one submission; the next timer tick re-evaluates."""


class SourceError(RecoverableError):
    pass

class SubmissionError(RecoverableError):
    pass


class FatalError(RelayError):
    """Non-recoverable failure; terminates the relay pipeline."""


class ChannelClosedError(FatalError):
    """The handoff channel reached its terminal CLOSED state."""

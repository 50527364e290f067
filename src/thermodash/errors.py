"""Exception hierarchy for thermodash."""


class ThermodashError(Exception):
    """Base class for all thermodash errors."""


class SessionStateError(ThermodashError):
    """Session operation is not valid in the current session state."""


class SummarizationError(ThermodashError):
    """Text-generation request failed or returned no usable text."""


class ConfigError(ThermodashError, ValueError):
    """Invalid value in the environment configuration."""

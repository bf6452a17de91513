"""Exceptions raised by the IKM scoring pipeline."""


class ScoringError(Exception):
    """Base class for pipeline errors the CLI reports to the user."""


class NormalizationError(ScoringError, ValueError):
    """A stored record cannot be shaped into a survey or response."""


class SurveyTypeError(ScoringError, ValueError):
    """Survey type is neither 'weighted' nor 'unweighted'."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown survey type {value!r}: expected 'weighted' or 'unweighted'")


class ConfigError(ScoringError, ValueError):
    """The scoring config file cannot be parsed or fails validation."""

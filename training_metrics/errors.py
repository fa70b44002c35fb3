"""
Training Metrics — Exceptions

The calculation core never raises on missing or odd numbers; these are
only raised where outside data enters (records, config) and by the
cancellation guard.
"""


class TrainingMetricsError(Exception):
    """Base class for everything this package raises."""


class InvalidRecordError(TrainingMetricsError, ValueError):
    """A store record could not be turned into a model."""


class ConfigError(TrainingMetricsError, ValueError):
    """Unknown key or invalid value in a training config mapping."""


class OperationCancelled(TrainingMetricsError):
    """Raised by the abort guard when a superseded operation tries to commit."""

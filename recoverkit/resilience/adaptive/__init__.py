from .classifier import DefaultErrorClassifier, ErrorClassifier, ErrorSeverity
from .recovery import AdaptiveRecovery

__all__ = [
    "AdaptiveRecovery",
    "DefaultErrorClassifier",
    "ErrorClassifier",
    "ErrorSeverity",
]

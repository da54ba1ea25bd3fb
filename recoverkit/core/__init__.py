from .outcome import Failure, Outcome, Success

__all__ = ["Failure", "Outcome", "Success"]

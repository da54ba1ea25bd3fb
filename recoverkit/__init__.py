"""recoverkit: composable error recovery for asyncio applications."""

from recoverkit.core.outcome import Failure, Outcome, Success

__version__ = "0.1.0"

__all__ = ["Failure", "Outcome", "Success", "__version__"]

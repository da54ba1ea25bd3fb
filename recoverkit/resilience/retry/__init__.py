from .backoff import proportional_jitter
from .strategies import RetryPolicies, RetryPolicy

# The `retry` decorator lives in .decorators; it builds on `Safe`, which
# itself imports this package, so it is exported from recoverkit.resilience.
__all__ = ["RetryPolicy", "RetryPolicies", "proportional_jitter"]

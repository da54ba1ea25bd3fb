from .alerts import AlertManager
from .health import ResilienceHealthChecker

__all__ = ["ResilienceHealthChecker", "AlertManager"]

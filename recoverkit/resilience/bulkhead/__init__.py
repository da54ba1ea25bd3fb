from .isolator import Bulkhead, bulkhead_metrics

__all__ = ["Bulkhead", "bulkhead_metrics"]

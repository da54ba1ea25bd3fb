from .chain import FallbackChain

__all__ = ["FallbackChain"]

from .dates import parse_period
from .debug_bundle import create_debug_bundle

__all__ = ["parse_period", "create_debug_bundle"]

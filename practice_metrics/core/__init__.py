"""Core dashboard pipeline components."""

from .orchestrator import DashboardAssembler
from .extractor import RecordExtractor
from .schema import SchemaInferenceEngine
from .transformer import DashboardTransformer
from .loader import DashboardLoader

__all__ = [
    'DashboardAssembler',
    'RecordExtractor',
    'SchemaInferenceEngine',
    'DashboardTransformer',
    'DashboardLoader'
]

"""
Processors executing transformation nodes of running pipelines.
"""

from .base import ProcessorConfig, ProcessorProvider, Route, internal_topic
from .processor import TransformationProcessor

__all__ = [
    "ProcessorConfig",
    "ProcessorProvider",
    "Route",
    "internal_topic",
    "TransformationProcessor",
]

"""Service layer: lifecycle engine, cache, invalidation and real-time fan-out."""

from .cache import CacheStore
from .dispatch import TransitionDispatcher
from .invalidation import InvalidationCoordinator
from .lifecycle import LifecycleEngine
from .read_path import ReadPath, ReadThroughCache
from .realtime import EndpointRegistry, Notifier
from .transitions import Transition, TransitionKind

__all__ = [
    "CacheStore",
    "EndpointRegistry",
    "InvalidationCoordinator",
    "LifecycleEngine",
    "Notifier",
    "ReadPath",
    "ReadThroughCache",
    "Transition",
    "TransitionDispatcher",
    "TransitionKind",
]

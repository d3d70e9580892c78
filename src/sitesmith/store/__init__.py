"""Run state storage."""

from sitesmith.store.run_registry import (
    DuplicateRunError,
    InvalidTransitionError,
    RunRegistry,
    StoreError,
    UnknownRunError,
)

__all__ = [
    "DuplicateRunError",
    "InvalidTransitionError",
    "RunRegistry",
    "StoreError",
    "UnknownRunError",
]

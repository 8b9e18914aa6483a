"""Exceptions raised inside the engine and turned into error lines at the
operation boundary."""

from __future__ import annotations


class FlowLensError(Exception):
    """Base class for FlowLens failures reported to the caller."""


class UsageError(FlowLensError):
    """A required argument is missing; the operation did not run.

    Attributes:
        usage: The usage line shown to the user.
    """

    def __init__(self, usage: str) -> None:
        super().__init__(f"usage: {usage}")
        self.usage = usage


class DatasetError(FlowLensError):
    """No dataset is loaded or the flow table could not be read."""

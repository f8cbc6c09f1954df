"""Application services built on top of the storage layer."""

from .study import StudyService

__all__ = ["StudyService"]

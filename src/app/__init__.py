"""Application bootstrap helpers for the study scheduler."""

from .runtime import build_study_service
from .settings import AppSettings

__all__ = ["build_study_service", "AppSettings"]

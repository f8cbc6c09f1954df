"""Bootstrap logic for the study scheduler."""

from __future__ import annotations

import logging

from src.app.settings import AppSettings
from src.db import get_session_factory, run_migrations_if_needed
from src.services import StudyService


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def build_study_service(settings: AppSettings) -> StudyService:
    """Prepare the database and return a service configured from ``settings``."""
    _configure_logging(settings.log_level)

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    service = StudyService(
        get_session_factory(),
        policy=settings.scheduler_policy,
        tz=settings.tz,
        seconds_per_review=settings.seconds_per_review,
        cram_limit=settings.cram_default_limit,
    )
    LOGGER.info(
        "%s ready in %s mode (timezone %s, pass threshold %s).",
        settings.app_name,
        settings.app_env,
        settings.study_timezone,
        settings.pass_threshold.value,
    )
    return service

"""Configuration helpers for the study scheduler runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.study.analytics import DEFAULT_SECONDS_PER_REVIEW
from src.study.due import DEFAULT_CRAM_LIMIT
from src.study.models import Quality, SchedulerPolicy


DEFAULT_TIMEZONE = "UTC"
MAX_CRAM_LIMIT = 500


def _read_int(name: str, default: str) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer.") from exc


def resolve_timezone(name: str) -> tzinfo:
    """Map a timezone name to a tzinfo, accepting ``UTC`` without a tz database."""
    if name.strip().upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"STUDY_TIMEZONE '{name}' is not a known timezone.") from exc


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    study_timezone: str
    pass_threshold: Quality
    graduating_repetitions: int
    max_interval_days: Optional[int]
    seconds_per_review: int
    cram_default_limit: int

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.study_timezone)

    @property
    def scheduler_policy(self) -> SchedulerPolicy:
        return SchedulerPolicy(
            pass_threshold=self.pass_threshold,
            graduating_repetitions=self.graduating_repetitions,
            max_interval_days=self.max_interval_days,
        )

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Study Scheduler")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")

        study_timezone = os.getenv("STUDY_TIMEZONE", DEFAULT_TIMEZONE)
        resolve_timezone(study_timezone)

        raw_threshold = os.getenv("SRS_PASS_THRESHOLD", Quality.GOOD.value).strip().capitalize()
        if raw_threshold not in {Quality.HARD.value, Quality.GOOD.value}:
            raise RuntimeError("SRS_PASS_THRESHOLD must be either 'Hard' or 'Good'.")
        pass_threshold = Quality(raw_threshold)

        graduating_repetitions = _read_int("SRS_GRADUATING_REPETITIONS", "2")
        if graduating_repetitions < 1:
            raise RuntimeError("SRS_GRADUATING_REPETITIONS must be a positive integer.")

        max_interval_days: Optional[int] = None
        if os.getenv("SRS_MAX_INTERVAL_DAYS"):
            max_interval_days = _read_int("SRS_MAX_INTERVAL_DAYS", "0")
            if max_interval_days < 1:
                raise RuntimeError("SRS_MAX_INTERVAL_DAYS must be a positive integer.")

        seconds_per_review = _read_int("SECONDS_PER_REVIEW", str(DEFAULT_SECONDS_PER_REVIEW))
        if seconds_per_review < 1:
            raise RuntimeError("SECONDS_PER_REVIEW must be a positive integer.")

        cram_default_limit = _read_int("CRAM_DEFAULT_LIMIT", str(DEFAULT_CRAM_LIMIT))
        if cram_default_limit < 1 or cram_default_limit > MAX_CRAM_LIMIT:
            raise RuntimeError(f"CRAM_DEFAULT_LIMIT must be between 1 and {MAX_CRAM_LIMIT}.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            study_timezone=study_timezone,
            pass_threshold=pass_threshold,
            graduating_repetitions=graduating_repetitions,
            max_interval_days=max_interval_days,
            seconds_per_review=seconds_per_review,
            cram_default_limit=cram_default_limit,
        )

"""Configuration loading for login attempts."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


class AmbiguousPolicy(Enum):
    """Decision applied when no verification probe is decisive."""

    SUCCESS = "success"
    FAILURE = "failure"
    UNCERTAIN = "uncertain"


class TypingMode(Enum):
    DIRECT = "direct"
    CHUNKED = "chunked"
    PER_CHARACTER = "per_character"


@dataclass(frozen=True, slots=True)
class LoginVerificationConfig:
    max_verification_time_seconds: float = 10.0
    initial_delay_ms: int = 500
    enable_timing_logs: bool = True
    capture_screenshots_on_failure: bool = True
    ambiguous_policy: AmbiguousPolicy = AmbiguousPolicy.SUCCESS


@dataclass(frozen=True, slots=True)
class TimeoutConfig:
    """Budgets for every bounded wait in the pipeline."""

    quick_error_timeout_ms: int = 2000
    min_time_per_method: float = 1.0
    max_time_per_method: float = 3.0
    detection_timeout_seconds: float = 10.0
    field_reveal_timeout_seconds: float = 5.0
    submit_search_timeout_seconds: float = 1.5
    polling_interval_ms: int = 100
    max_polling_interval_ms: int = 500
    polling_growth_factor: float = 1.5
    polling_implicit_wait_ms: int = 100
    stable_check_count: int = 2
    external_timeout_seconds: float = 20.0

    def validate(self, verification: Optional[LoginVerificationConfig] = None) -> None:
        if self.min_time_per_method >= self.max_time_per_method:
            raise ConfigurationError(
                f"min_time_per_method ({self.min_time_per_method}s) must be less than "
                f"max_time_per_method ({self.max_time_per_method}s)"
            )
        if self.polling_interval_ms / 1000 >= self.detection_timeout_seconds:
            raise ConfigurationError(
                f"polling_interval_ms ({self.polling_interval_ms}ms) must be much less than "
                f"detection_timeout_seconds ({self.detection_timeout_seconds}s)"
            )
        if self.max_polling_interval_ms < self.polling_interval_ms:
            raise ConfigurationError("max_polling_interval_ms must not be below polling_interval_ms")
        if self.polling_growth_factor < 1.0:
            raise ConfigurationError("polling_growth_factor must be at least 1.0")
        if self.stable_check_count < 1:
            raise ConfigurationError("stable_check_count must be at least 1")
        if verification is not None:
            if self.external_timeout_seconds <= verification.max_verification_time_seconds:
                raise ConfigurationError(
                    f"external_timeout_seconds ({self.external_timeout_seconds}s) must be greater than "
                    f"max_verification_time_seconds ({verification.max_verification_time_seconds}s)"
                )
            if verification.initial_delay_ms / 1000 >= verification.max_verification_time_seconds:
                raise ConfigurationError("initial_delay_ms must be less than the verification budget")


@dataclass(frozen=True, slots=True)
class CredentialEntryConfig:
    typing_mode: TypingMode = TypingMode.CHUNKED
    max_chunk_size: int = 5
    min_delay_ms: int = 10
    max_delay_ms: int = 30
    post_entry_delay_ms: int = 50
    submission_delay_ms: int = 500
    max_stale_retries: int = 2


@dataclass(slots=True)
class AppConfig:
    """Holds runtime options for a single login attempt."""

    target_url: str
    username: Optional[str]
    password: Optional[str]
    report_path: Path
    domain: Optional[str] = None
    headless: bool = False
    screenshot_dir: Optional[Path] = None
    site_config_path: Optional[Path] = None
    browser_timeout_ms: int = 30000
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    verification: LoginVerificationConfig = field(default_factory=LoginVerificationConfig)
    entry: CredentialEntryConfig = field(default_factory=CredentialEntryConfig)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _parse_policy(raw: Optional[str]) -> AmbiguousPolicy:
    if not raw:
        return AmbiguousPolicy.SUCCESS
    try:
        return AmbiguousPolicy(raw.strip().lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in AmbiguousPolicy)
        raise ConfigurationError(f"AMBIGUOUS_POLICY must be one of: {choices}") from exc


def load_configuration(
    target_url: str,
    report_name: str = "login_report.json",
    *,
    username: Optional[str] = None,
    password: Optional[str] = None,
    domain: Optional[str] = None,
    headless: Optional[bool] = None,
    screenshot_dir: Optional[str] = None,
    site_config: Optional[str] = None,
) -> AppConfig:
    """Builds an ``AppConfig`` from CLI input and environment variables."""

    load_dotenv()  # Loads .env values if present

    verification_timeout = os.getenv("VERIFICATION_TIMEOUT")
    verification = LoginVerificationConfig(
        max_verification_time_seconds=float(verification_timeout) if verification_timeout else 10.0,
        ambiguous_policy=_parse_policy(os.getenv("AMBIGUOUS_POLICY")),
    )
    timeouts = TimeoutConfig(
        external_timeout_seconds=max(20.0, verification.max_verification_time_seconds + 5.0),
    )
    timeouts.validate(verification)

    screenshots = screenshot_dir or os.getenv("SCREENSHOT_DIR")
    site_config_path = site_config or os.getenv("SITE_CONFIG_PATH")

    return AppConfig(
        target_url=target_url.strip(),
        username=username or os.getenv("LOGIN_USERNAME") or None,
        password=password or os.getenv("LOGIN_PASSWORD") or None,
        domain=domain if domain is not None else (os.getenv("LOGIN_DOMAIN") or None),
        report_path=Path(report_name).resolve(),
        headless=headless if headless is not None else _env_flag("HEADLESS"),
        screenshot_dir=Path(screenshots).resolve() if screenshots else None,
        site_config_path=Path(site_config_path).resolve() if site_config_path else None,
        timeouts=timeouts,
        verification=verification,
    )

"""Per-site selector overrides for login pages that defeat the heuristics."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.errors import ConfigurationError
from ..core.models import FieldRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteLoginConfiguration:
    url_pattern: str
    display_name: str = ""
    priority: int = 0
    username_selectors: tuple[str, ...] = ()
    password_selectors: tuple[str, ...] = ()
    domain_selectors: tuple[str, ...] = ()
    submit_selectors: tuple[str, ...] = ()
    additional_wait_ms: int = 0
    success_indicators: tuple[str, ...] = ()
    failure_indicators: tuple[str, ...] = ()

    def selectors_for(self, role: FieldRole) -> tuple[str, ...]:
        return {
            FieldRole.USERNAME: self.username_selectors,
            FieldRole.PASSWORD: self.password_selectors,
            FieldRole.DOMAIN: self.domain_selectors,
            FieldRole.SUBMIT: self.submit_selectors,
        }[role]

    def matches(self, url: str) -> bool:
        return bool(self.url_pattern) and self.url_pattern.lower() in url.lower()

    @classmethod
    def from_dict(cls, data: dict) -> "SiteLoginConfiguration":
        pattern = data.get("url_pattern")
        if not pattern or not isinstance(pattern, str):
            raise ConfigurationError("Site configuration entries need a non-empty 'url_pattern'")

        def _selectors(key: str) -> tuple[str, ...]:
            values = data.get(key) or []
            if isinstance(values, str):
                values = [values]
            return tuple(str(value) for value in values if value)

        return cls(
            url_pattern=pattern,
            display_name=str(data.get("display_name", pattern)),
            priority=int(data.get("priority", 0)),
            username_selectors=_selectors("username_selectors"),
            password_selectors=_selectors("password_selectors"),
            domain_selectors=_selectors("domain_selectors"),
            submit_selectors=_selectors("submit_selectors"),
            additional_wait_ms=int(data.get("additional_wait_ms", 0)),
            success_indicators=_selectors("success_indicators"),
            failure_indicators=_selectors("failure_indicators"),
        )


BUILTIN_CONFIGURATIONS = (
    SiteLoginConfiguration(
        url_pattern="login.microsoftonline.com",
        display_name="Microsoft Entra ID",
        priority=20,
        username_selectors=("input[name='loginfmt']", "#i0116"),
        password_selectors=("input[name='passwd']", "#i0118"),
        submit_selectors=("#idSIButton9", "input[type='submit']"),
        additional_wait_ms=500,
    ),
    SiteLoginConfiguration(
        url_pattern="okta.com",
        display_name="Okta",
        priority=10,
        username_selectors=("#okta-signin-username", "input[name='identifier']", "input[name='username']"),
        password_selectors=("#okta-signin-password", "input[name='credentials.passcode']", "input[name='password']"),
        submit_selectors=("#okta-signin-submit", "input[type='submit']"),
    ),
    SiteLoginConfiguration(
        url_pattern="/adfs/ls",
        display_name="AD FS",
        priority=10,
        username_selectors=("#userNameInput",),
        password_selectors=("#passwordInput",),
        submit_selectors=("#submitButton",),
    ),
)


@dataclass
class SiteConfigurationStore:
    """Priority-ordered collection of site configurations."""

    configurations: List[SiteLoginConfiguration] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.configurations = sorted(self.configurations, key=lambda config: -config.priority)

    @classmethod
    def builtin(cls) -> "SiteConfigurationStore":
        return cls(list(BUILTIN_CONFIGURATIONS))

    @classmethod
    def from_json(cls, path: Path, *, include_builtin: bool = True) -> "SiteConfigurationStore":
        """Loads entries from a JSON file holding a list (or ``{"sites": [...]}``)."""

        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Could not read site configuration {path}: {exc}") from exc

        entries = payload.get("sites", []) if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise ConfigurationError(f"Site configuration {path} must contain a list of sites")

        loaded = [SiteLoginConfiguration.from_dict(entry) for entry in entries]
        logger.info("Loaded %d site configuration(s) from %s", len(loaded), path)
        base = list(BUILTIN_CONFIGURATIONS) if include_builtin else []
        return cls(loaded + base)

    def add(self, configurations: Iterable[SiteLoginConfiguration]) -> None:
        self.configurations = sorted(
            [*self.configurations, *configurations], key=lambda config: -config.priority
        )

    def lookup(self, url: str) -> Optional[SiteLoginConfiguration]:
        for config in self.configurations:
            if config.matches(url):
                return config
        return None

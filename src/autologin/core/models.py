"""Shared data structures used across the login pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from .session import Element, same_element


class FieldRole(Enum):
    USERNAME = "username"
    PASSWORD = "password"
    DOMAIN = "domain"
    SUBMIT = "submit"


class DomainMode(Enum):
    """Whether detection should look for a domain/tenant field at all."""

    DETECT = "detect"
    SKIP = "skip"

    @classmethod
    def for_value(cls, domain: Optional[str]) -> "DomainMode":
        if not domain or not domain.strip() or domain.strip().lower() == "none":
            return cls.SKIP
        return cls.DETECT


@dataclass(frozen=True)
class Candidate:
    """One DOM element considered for a role, with its attributes cached."""

    element: Element
    order: int
    tag: str = ""
    type: str = ""
    id: str = ""
    name: str = ""
    placeholder: str = ""
    aria_label: str = ""
    class_name: str = ""
    autocomplete: str = ""
    value: str = ""
    text: str = ""
    option_count: int = 0
    option_texts: Tuple[str, ...] = ()
    displayed: bool = True
    enabled: bool = True
    zero_size: bool = False

    @property
    def identifying_text(self) -> str:
        """Lower-cased identifying attributes joined by spaces."""

        return " ".join(
            part
            for part in (self.id, self.name, self.placeholder, self.aria_label, self.class_name)
            if part
        )

    def describe(self) -> str:
        for prefix, value in (("id", self.id), ("name", self.name), ("placeholder", self.placeholder)):
            if value:
                return f"{self.tag or 'element'}[{prefix}={value}]"
        if self.text:
            return f"{self.tag or 'element'}('{self.text[:30]}')"
        return f"{self.tag or 'element'}#{self.order}"


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: int


@dataclass
class LoginFormElements:
    """Handles for the detected login controls; owned by the browser session."""

    username_field: Optional[Element] = None
    password_field: Optional[Element] = None
    domain_field: Optional[Element] = None
    submit_button: Optional[Element] = None
    strategy: str = ""
    descriptions: Dict[str, str] = field(default_factory=dict)

    @property
    def is_minimum_viable(self) -> bool:
        return self.username_field is not None and self.password_field is not None

    def get(self, role: FieldRole) -> Optional[Element]:
        return {
            FieldRole.USERNAME: self.username_field,
            FieldRole.PASSWORD: self.password_field,
            FieldRole.DOMAIN: self.domain_field,
            FieldRole.SUBMIT: self.submit_button,
        }[role]

    def items(self) -> Iterator[Tuple[FieldRole, Element]]:
        for role in FieldRole:
            element = self.get(role)
            if element is not None:
                yield role, element

    def is_distinct(self) -> bool:
        """True when no two present references point to the same element."""

        present = [element for _, element in self.items()]
        for index, element in enumerate(present):
            for other in present[index + 1:]:
                if same_element(element, other):
                    return False
        return True


@dataclass(frozen=True)
class ConfidenceResult:
    probe: str
    outcome: bool
    confidence: float
    detail: str = ""
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "probe": self.probe,
            "outcome": self.outcome,
            "confidence": round(self.confidence, 3),
        }
        if self.detail:
            data["detail"] = self.detail
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class PageState:
    url: str
    title: str
    ready_state: str = "unknown"
    content_hash: str = ""
    has_loading_indicator: bool = False
    timestamp: float = 0.0


@dataclass(frozen=True)
class FastPageState:
    url: str
    title: str
    timestamp: float = 0.0


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class DetectionSession:
    """Correlation data for log lines; never used in decisions."""

    session_id: str = field(default_factory=_short_id)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

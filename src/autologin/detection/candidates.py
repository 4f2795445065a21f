"""Turns live DOM elements into scoreable candidates."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.errors import SessionError, StaleElementError
from ..core.models import Candidate, FieldRole
from ..core.session import BrowserSession, Element, same_element
from .scorer import Anchors, ElementScorer, best_selectable

logger = logging.getLogger(__name__)

CONTROL_QUERY = "input, select, textarea, button, [role='button'], a.btn, a.button"
MAX_CANDIDATES = 200
MAX_OPTION_TEXTS = 10

_TEXT_TAGS = frozenset(("button", "a", "div", "span"))


def _lower(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class CandidateCollector:
    """Reads the attributes the scorer needs from each element exactly once."""

    def build(self, element: Element, order: int) -> Optional[Candidate]:
        """Returns ``None`` when the element cannot be inspected.

        ``StaleElementError`` is propagated so the caller can re-run its lookup.
        """

        try:
            tag = _lower(element.tag_name)
            option_texts: Tuple[str, ...] = ()
            option_count = 0
            if tag == "select":
                options = element.find_elements("option")
                option_count = len(options)
                option_texts = tuple(_lower(option.text) for option in options[:MAX_OPTION_TEXTS])
            text = _lower(element.text) if tag in _TEXT_TAGS else ""
            size = element.size()
            return Candidate(
                element=element,
                order=order,
                tag=tag,
                type=_lower(element.get_attribute("type")),
                id=_lower(element.get_attribute("id")),
                name=_lower(element.get_attribute("name")),
                placeholder=_lower(element.get_attribute("placeholder")),
                aria_label=_lower(element.get_attribute("aria-label")),
                class_name=_lower(element.get_attribute("class")),
                autocomplete=_lower(element.get_attribute("autocomplete")),
                value=_lower(element.get_attribute("value")) if tag in ("input", "button") else "",
                text=text,
                option_count=option_count,
                option_texts=option_texts,
                displayed=element.is_displayed(),
                enabled=element.is_enabled(),
                zero_size=size is not None and (size[0] <= 0 or size[1] <= 0),
            )
        except StaleElementError:
            raise
        except SessionError as exc:
            logger.debug("Skipping element #%d: %s", order, exc)
            return None

    def build_all(self, elements: Sequence[Element]) -> List[Candidate]:
        candidates = []
        for order, element in enumerate(elements[:MAX_CANDIDATES]):
            candidate = self.build(element, order)
            if candidate is not None:
                candidates.append(candidate)
        return candidates


class QueryCache:
    """Element lookups memoised per page URL for one detection pass."""

    def __init__(self) -> None:
        self._url: Optional[str] = None
        self._entries: Dict[Tuple[str, str], List[Element]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def find(self, session: BrowserSession, selector: str, *, shadow: bool = False) -> List[Element]:
        url = session.current_url
        if url != self._url:
            self._entries.clear()
            self._url = url
        key = ("shadow" if shadow else "light", selector)
        if key not in self._entries:
            finder: Callable[[str], Sequence[Element]] = (
                session.find_shadow_elements if shadow else session.find_elements
            )
            self._entries[key] = list(finder(selector))
        return self._entries[key]


def find_candidate(candidates: Iterable[Candidate], element: Optional[Element]) -> Optional[Candidate]:
    if element is None:
        return None
    for candidate in candidates:
        if same_element(candidate.element, element):
            return candidate
    return None


class RoleLocator:
    """Finds the best element for a single role on the current page."""

    def __init__(
        self,
        scorer: Optional[ElementScorer] = None,
        collector: Optional[CandidateCollector] = None,
    ) -> None:
        self.scorer = scorer or ElementScorer()
        self.collector = collector or CandidateCollector()

    def locate(
        self,
        session: BrowserSession,
        role: FieldRole,
        *,
        anchors: Optional[Mapping[FieldRole, Element]] = None,
        exclude: Sequence[Element] = (),
    ) -> Optional[Element]:
        candidates = self.collector.build_all(session.find_elements(CONTROL_QUERY))
        anchor_candidates = {}
        for anchor_role, element in (anchors or {}).items():
            match = find_candidate(candidates, element)
            if match is not None:
                anchor_candidates[anchor_role] = match
        ranking = self.scorer.rank(candidates, role, Anchors.from_mapping(anchor_candidates))
        taken = [candidate for candidate in (find_candidate(candidates, item) for item in exclude) if candidate]
        choice = best_selectable(ranking, taken)
        if choice is None:
            return None
        logger.debug("Located %s field %s (score %d)", role.value, choice.candidate.describe(), choice.score)
        return choice.candidate.element

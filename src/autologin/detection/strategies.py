"""Detection strategies tried in order by :class:`LoginDetector`.

Every strategy exposes ``name`` and ``try_detect(session, domain_mode,
deadline)``. A strategy returns ``None`` when it cannot produce a form; it may
raise ``StaleElementError`` (the detector retries it) or ``SessionError`` (the
detector moves on to the next strategy).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol, Sequence

from ..core.models import Candidate, DomainMode, FieldRole, LoginFormElements, ScoredCandidate
from ..core.session import BrowserSession, Element, same_element, xpath
from ..core.timing import Deadline
from .candidates import CONTROL_QUERY, CandidateCollector, QueryCache
from .scorer import ElementScorer, rank_roles, reconcile
from .site_config import SiteConfigurationStore

logger = logging.getLogger(__name__)

PASSWORD_ANCHOR_QUERY = "input[type='password']"
FAST_PATH_QUERY = "input, button"
FAST_PATH_DOMAIN_QUERY = "input, select, button"


def _lower_contains(attribute: str, term: str) -> str:
    return f"contains(translate({attribute}, '{term.upper()}', '{term}'), '{term}')"


XPATH_QUERIES: Dict[FieldRole, tuple[str, ...]] = {
    FieldRole.USERNAME: (
        f"//input[{_lower_contains('@id', 'username')}]",
        f"//input[{_lower_contains('@name', 'username')}]",
        f"//input[{_lower_contains('@placeholder', 'username')}]",
        "//input[@type='email']",
        f"//input[@type='text' and ({_lower_contains('@name', 'user')} or {_lower_contains('@id', 'user')})]",
        f"//label[{_lower_contains('.', 'username')}]/following::input[1]",
        f"//label[{_lower_contains('.', 'email')}]/following::input[1]",
    ),
    FieldRole.PASSWORD: (
        f"//input[{_lower_contains('@id', 'password')}]",
        f"//input[{_lower_contains('@name', 'password')}]",
        f"//input[{_lower_contains('@placeholder', 'password')}]",
        f"//label[{_lower_contains('.', 'password')}]/following::input[1]",
        f"//label[{_lower_contains('.', 'password')}]/..//input",
    ),
    FieldRole.DOMAIN: (
        f"//select[{_lower_contains('@id', 'domain')}]",
        f"//select[{_lower_contains('@name', 'domain')}]",
        f"//input[{_lower_contains('@id', 'domain')}]",
        f"//input[{_lower_contains('@name', 'domain')}]",
        f"//label[{_lower_contains('.', 'domain')}]/following::select[1]",
        f"//label[{_lower_contains('.', 'domain')}]/following::input[1]",
    ),
    FieldRole.SUBMIT: (
        "//input[@type='submit']",
        "//button[@type='submit']",
        f"//button[{_lower_contains('@id', 'login')}]",
        f"//button[{_lower_contains('.', 'login')}]",
        f"//button[{_lower_contains('.', 'sign in')}]",
        f"//input[{_lower_contains('@value', 'login')}]",
    ),
}


class DetectionStrategy(Protocol):
    name: str

    def try_detect(
        self,
        session: BrowserSession,
        domain_mode: DomainMode,
        deadline: Deadline,
    ) -> Optional[LoginFormElements]: ...


def roles_for(domain_mode: DomainMode) -> List[FieldRole]:
    roles = [FieldRole.PASSWORD, FieldRole.USERNAME, FieldRole.SUBMIT]
    if domain_mode is DomainMode.DETECT:
        roles.insert(2, FieldRole.DOMAIN)
    return roles


def build_form(strategy: str, assigned: Dict[FieldRole, ScoredCandidate]) -> LoginFormElements:
    def element(role: FieldRole) -> Optional[Element]:
        choice = assigned.get(role)
        return choice.candidate.element if choice else None

    return LoginFormElements(
        username_field=element(FieldRole.USERNAME),
        password_field=element(FieldRole.PASSWORD),
        domain_field=element(FieldRole.DOMAIN),
        submit_button=element(FieldRole.SUBMIT),
        strategy=strategy,
        descriptions={role.value: choice.candidate.describe() for role, choice in assigned.items()},
    )


class _ScoringStrategy:
    name = "base"

    def __init__(
        self,
        cache: QueryCache,
        scorer: Optional[ElementScorer] = None,
        collector: Optional[CandidateCollector] = None,
    ) -> None:
        self.cache = cache
        self.scorer = scorer or ElementScorer()
        self.collector = collector or CandidateCollector()

    def _score(self, candidates: Sequence[Candidate], domain_mode: DomainMode) -> Optional[LoginFormElements]:
        if not candidates:
            return None
        assigned = rank_roles(self.scorer, candidates, roles_for(domain_mode))
        if not assigned:
            return None
        return build_form(self.name, assigned)


class FastPathStrategy(_ScoringStrategy):
    """Anchors on a password input and scores one narrow control query."""

    name = "fast_path"

    def try_detect(self, session, domain_mode, deadline):
        passwords = self.cache.find(session, PASSWORD_ANCHOR_QUERY)
        if not any(element.is_displayed() for element in passwords):
            logger.debug("Fast path: no visible password input")
            return None
        if deadline.expired:
            return None
        query = FAST_PATH_DOMAIN_QUERY if domain_mode is DomainMode.DETECT else FAST_PATH_QUERY
        candidates = self.collector.build_all(self.cache.find(session, query))
        return self._score(candidates, domain_mode)


class HeuristicStrategy(_ScoringStrategy):
    """Scores every form control on the page."""

    name = "heuristic"

    def try_detect(self, session, domain_mode, deadline):
        candidates = self.collector.build_all(self.cache.find(session, CONTROL_QUERY))
        return self._score(candidates, domain_mode)


class ShadowDomStrategy(_ScoringStrategy):
    """Same scoring as the heuristic pass, over controls inside open shadow roots."""

    name = "shadow_dom"

    def try_detect(self, session, domain_mode, deadline):
        candidates = self.collector.build_all(self.cache.find(session, CONTROL_QUERY, shadow=True))
        return self._score(candidates, domain_mode)


class XPathStrategy(_ScoringStrategy):
    """Per-role XPath lookups, each result still gated by the scorer."""

    name = "xpath"

    def __init__(self, cache, scorer=None, collector=None, queries: Optional[Dict[FieldRole, Sequence[str]]] = None):
        super().__init__(cache, scorer, collector)
        self.queries = queries or XPATH_QUERIES

    def try_detect(self, session, domain_mode, deadline):
        rankings: Dict[FieldRole, List[ScoredCandidate]] = {}
        for role in roles_for(domain_mode):
            if deadline.expired:
                return None
            elements = self._collect(session, self.queries.get(role, ()))
            if elements:
                rankings[role] = self.scorer.rank(self.collector.build_all(elements), role)
        assigned = reconcile(rankings)
        if not assigned:
            return None
        return build_form(self.name, assigned)

    def _collect(self, session: BrowserSession, expressions: Sequence[str]) -> List[Element]:
        found: List[Element] = []
        for expression in expressions:
            for element in self.cache.find(session, xpath(expression)):
                if not any(same_element(element, known) for known in found):
                    found.append(element)
        return found


class SiteConfigurationStrategy(_ScoringStrategy):
    """Uses known selectors for recognised login pages."""

    name = "site_configuration"

    def __init__(self, cache, store: Optional[SiteConfigurationStore] = None, scorer=None, collector=None):
        super().__init__(cache, scorer, collector)
        self.store = store if store is not None else SiteConfigurationStore.builtin()

    def try_detect(self, session, domain_mode, deadline):
        config = self.store.lookup(session.current_url)
        if config is None:
            return None
        logger.debug("Using site configuration '%s'", config.display_name or config.url_pattern)
        if config.additional_wait_ms and not deadline.sleep(config.additional_wait_ms / 1000):
            return None

        chosen: Dict[FieldRole, Element] = {}
        descriptions: Dict[str, str] = {}
        for role in roles_for(domain_mode):
            for selector in config.selectors_for(role):
                if deadline.expired:
                    return None
                match = self._first_usable(session, selector, chosen.values())
                if match is not None:
                    chosen[role] = match.element
                    descriptions[role.value] = f"{match.describe()} via {selector}"
                    break
        if not chosen:
            return None
        return LoginFormElements(
            username_field=chosen.get(FieldRole.USERNAME),
            password_field=chosen.get(FieldRole.PASSWORD),
            domain_field=chosen.get(FieldRole.DOMAIN),
            submit_button=chosen.get(FieldRole.SUBMIT),
            strategy=self.name,
            descriptions=descriptions,
        )

    def _first_usable(self, session, selector, taken) -> Optional[Candidate]:
        taken = list(taken)
        for order, element in enumerate(self.cache.find(session, selector)):
            candidate = self.collector.build(element, order)
            if candidate is None or not candidate.displayed or not candidate.enabled:
                continue
            if any(same_element(element, other) for other in taken):
                continue
            return candidate
        return None


def default_strategies(
    cache: QueryCache,
    *,
    scorer: Optional[ElementScorer] = None,
    store: Optional[SiteConfigurationStore] = None,
) -> List[DetectionStrategy]:
    scorer = scorer or ElementScorer()
    return [
        FastPathStrategy(cache, scorer),
        SiteConfigurationStrategy(cache, store, scorer),
        HeuristicStrategy(cache, scorer),
        XPathStrategy(cache, scorer),
        ShadowDomStrategy(cache, scorer),
    ]

"""Login form detection pipeline."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from ..core.config import TimeoutConfig
from ..core.errors import SessionError, StaleElementError
from ..core.models import DetectionSession, DomainMode, FieldRole, LoginFormElements
from ..core.session import BrowserSession, reduced_implicit_wait
from ..core.timing import Clock, Deadline, SYSTEM_CLOCK
from .candidates import CONTROL_QUERY, CandidateCollector, QueryCache
from .scorer import ElementScorer, rank_roles
from .site_config import SiteConfigurationStore
from .strategies import DetectionStrategy, build_form, default_strategies

logger = logging.getLogger(__name__)


class LoginDetector:
    """Runs the detection strategies in order until one yields a usable form.

    The detector never raises because a form is missing or the budget ran
    out: it returns ``None``. Only ``SessionLostError`` escapes.
    """

    def __init__(
        self,
        timeouts: Optional[TimeoutConfig] = None,
        *,
        site_store: Optional[SiteConfigurationStore] = None,
        scorer: Optional[ElementScorer] = None,
        strategies: Optional[Sequence[DetectionStrategy]] = None,
        max_stale_retries: int = 2,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.timeouts = timeouts or TimeoutConfig()
        self.scorer = scorer or ElementScorer()
        self.cache = QueryCache()
        self.strategies: List[DetectionStrategy] = list(
            strategies
            if strategies is not None
            else default_strategies(self.cache, scorer=self.scorer, store=site_store)
        )
        self.max_stale_retries = max_stale_retries
        self.clock = clock

    def detect(
        self,
        session: BrowserSession,
        domain_mode: DomainMode = DomainMode.DETECT,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[LoginFormElements]:
        self.cache.clear()
        detection = DetectionSession()
        deadline = Deadline.after(self.timeouts.detection_timeout_seconds, clock=self.clock, cancel=cancel)
        logger.debug("[%s] Detecting login form on %s (domain %s)", detection.session_id, session.current_url, domain_mode.value)

        with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
            for strategy in self.strategies:
                if deadline.expired:
                    logger.warning("[%s] Detection budget exhausted before '%s'", detection.session_id, strategy.name)
                    return None
                form = self._run_strategy(strategy, session, domain_mode, deadline, detection)
                if form is None:
                    continue
                if not form.is_minimum_viable:
                    logger.debug("[%s] '%s' found an incomplete form", detection.session_id, strategy.name)
                    continue
                if not form.is_distinct():
                    logger.debug("[%s] '%s' returned aliased fields, discarding", detection.session_id, strategy.name)
                    continue
                logger.info(
                    "[%s] Login form detected by '%s': %s",
                    detection.session_id,
                    strategy.name,
                    ", ".join(f"{role}={desc}" for role, desc in form.descriptions.items()),
                )
                return form

        logger.info("[%s] No login form detected on %s", detection.session_id, session.current_url)
        return None

    def detect_partial(
        self,
        session: BrowserSession,
        domain_mode: DomainMode = DomainMode.DETECT,
    ) -> Optional[LoginFormElements]:
        """Finds the username field of a form that reveals its password later."""

        roles = [FieldRole.USERNAME]
        if domain_mode is DomainMode.DETECT:
            roles.append(FieldRole.DOMAIN)
        self.cache.clear()
        collector = CandidateCollector()
        for attempt in range(self.max_stale_retries + 1):
            try:
                with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
                    candidates = collector.build_all(self.cache.find(session, CONTROL_QUERY))
                break
            except StaleElementError:
                self.cache.clear()
            except SessionError as exc:
                logger.warning("Partial detection failed: %s", exc)
                return None
        else:
            return None

        assigned = rank_roles(self.scorer, candidates, roles)
        if FieldRole.USERNAME not in assigned:
            return None
        form = build_form("partial", assigned)
        logger.info("Partial login form detected: %s", form.descriptions.get("username"))
        return form

    def _run_strategy(
        self,
        strategy: DetectionStrategy,
        session: BrowserSession,
        domain_mode: DomainMode,
        deadline: Deadline,
        detection: DetectionSession,
    ) -> Optional[LoginFormElements]:
        started = self.clock.now()
        attempts = 0
        while True:
            try:
                form = strategy.try_detect(session, domain_mode, deadline)
                logger.debug(
                    "[%s] Strategy '%s' finished in %.0fms",
                    detection.session_id,
                    strategy.name,
                    (self.clock.now() - started) * 1000,
                )
                return form
            except StaleElementError:
                attempts += 1
                self.cache.clear()
                if attempts > self.max_stale_retries or deadline.expired:
                    logger.debug("[%s] '%s' kept hitting stale elements", detection.session_id, strategy.name)
                    return None
                logger.debug("[%s] Stale element in '%s', retry %d", detection.session_id, strategy.name, attempts)
            except SessionError as exc:
                logger.debug("[%s] Strategy '%s' failed: %s", detection.session_id, strategy.name, exc)
                return None

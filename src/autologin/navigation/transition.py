"""Detects page transitions (navigation, re-render) after a user action."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..core.config import TimeoutConfig
from ..core.errors import SessionError
from ..core.models import FastPageState, PageState
from ..core.session import BrowserSession, reduced_implicit_wait
from ..core.timing import Clock, Deadline, SYSTEM_CLOCK

logger = logging.getLogger(__name__)

LOADING_INDICATOR_QUERY = ".loading, .spinner, [class*='loading'], [class*='spinner'], [aria-busy='true']"

Snapshot = Union[PageState, FastPageState]


class TransitionMode(Enum):
    STANDARD = "standard"
    FAST = "fast"


@dataclass(frozen=True)
class TransitionResult:
    changed: bool
    description: str
    final_state: Optional[Snapshot] = None
    elapsed_seconds: float = 0.0
    cancelled: bool = False

    def __bool__(self) -> bool:
        return self.changed


def content_hash(source: str) -> str:
    return hashlib.sha1(source.encode("utf-8", "replace")).hexdigest()


def describe_change(baseline: Snapshot, current: Snapshot) -> Optional[str]:
    """Returns a human readable change description, or ``None`` if unchanged."""

    if baseline.url.lower() != current.url.lower():
        return f"URL: {baseline.url} -> {current.url}"
    if baseline.title != current.title:
        return f"Title: '{baseline.title}' -> '{current.title}'"
    if isinstance(baseline, PageState) and isinstance(current, PageState):
        if baseline.content_hash != current.content_hash and not current.has_loading_indicator:
            return "Page content changed"
    return None


class PageTransitionDetector:
    """Polls URL, title and DOM hash until something changes or time runs out."""

    def __init__(self, timeouts: Optional[TimeoutConfig] = None, clock: Clock = SYSTEM_CLOCK) -> None:
        self.timeouts = timeouts or TimeoutConfig()
        self.clock = clock

    def capture_state(self, session: BrowserSession) -> PageState:
        return PageState(
            url=session.current_url,
            title=session.title,
            ready_state=session.ready_state,
            content_hash=content_hash(session.page_source),
            has_loading_indicator=self._loading_visible(session),
            timestamp=self.clock.now(),
        )

    def capture_fast_state(self, session: BrowserSession) -> FastPageState:
        return FastPageState(url=session.current_url, title=session.title, timestamp=self.clock.now())

    def watch(
        self,
        session: BrowserSession,
        budget_seconds: float,
        mode: TransitionMode = TransitionMode.STANDARD,
        baseline: Optional[Snapshot] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TransitionResult:
        started = self.clock.now()
        deadline = Deadline.after(budget_seconds, clock=self.clock, cancel=cancel)
        interval = self.timeouts.polling_interval_ms / 1000
        ceiling = self.timeouts.max_polling_interval_ms / 1000
        last: Optional[Snapshot] = None

        with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
            check_now = baseline is not None
            if baseline is None:
                baseline = self._snapshot(session, mode)
            elif mode is TransitionMode.FAST and isinstance(baseline, PageState):
                baseline = FastPageState(url=baseline.url, title=baseline.title, timestamp=baseline.timestamp)

            while not deadline.cancelled:
                if check_now:
                    current = self._snapshot(session, mode)
                    if current is not None:
                        last = current
                        if baseline is None:
                            baseline = current
                        else:
                            description = describe_change(baseline, current)
                            if description:
                                elapsed = self.clock.now() - started
                                logger.debug("Transition detected after %.0fms: %s", elapsed * 1000, description)
                                return TransitionResult(True, description, current, elapsed)
                if deadline.expired:
                    break
                deadline.sleep(interval)
                check_now = True
                if mode is TransitionMode.STANDARD:
                    interval = min(interval * self.timeouts.polling_growth_factor, ceiling)

        elapsed = self.clock.now() - started
        if deadline.cancelled:
            return TransitionResult(False, "cancelled", last, elapsed, cancelled=True)
        return TransitionResult(False, "no change before timeout", last, elapsed)

    def wait_for_change(
        self,
        session: BrowserSession,
        budget_seconds: float,
        mode: TransitionMode = TransitionMode.STANDARD,
        baseline: Optional[Snapshot] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        return self.watch(session, budget_seconds, mode, baseline, cancel).changed

    def wait_for_stable(
        self,
        session: BrowserSession,
        budget_seconds: float,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """True once ``stable_check_count`` identical snapshots were seen in a row."""

        deadline = Deadline.after(budget_seconds, clock=self.clock, cancel=cancel)
        interval = self.timeouts.polling_interval_ms / 1000
        previous: Optional[PageState] = None
        identical = 0

        with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
            while not deadline.cancelled:
                current = self._snapshot(session, TransitionMode.STANDARD)
                if isinstance(current, PageState) and not current.has_loading_indicator:
                    if previous is not None and describe_change(previous, current) is None:
                        identical += 1
                    else:
                        identical = 1
                    previous = current
                    if identical >= self.timeouts.stable_check_count:
                        return True
                else:
                    identical = 0
                if deadline.expired:
                    break
                deadline.sleep(interval)
        return False

    def _snapshot(self, session: BrowserSession, mode: TransitionMode) -> Optional[Snapshot]:
        try:
            if mode is TransitionMode.FAST:
                return self.capture_fast_state(session)
            return self.capture_state(session)
        except SessionError as exc:
            logger.debug("Snapshot failed: %s", exc)
            return None

    @staticmethod
    def _loading_visible(session: BrowserSession) -> bool:
        try:
            return any(element.is_displayed() for element in session.find_elements(LOADING_INDICATOR_QUERY))
        except SessionError:
            return False

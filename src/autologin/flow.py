"""Detect, fill and verify a login form in one pass."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from .core.config import AppConfig
from .core.errors import LoginFormNotFoundError, SessionError, SessionLostError
from .core.models import DomainMode
from .core.report import LoginAttemptReport
from .core.session import BrowserSession
from .core.timing import AnyEvent, Clock, SYSTEM_CLOCK
from .detection.detector import LoginDetector
from .detection.site_config import SiteConfigurationStore
from .entry.credentials import CredentialManager
from .entry.disclosure import FieldRevealWatcher
from .navigation.transition import PageTransitionDetector
from .verification.verifier import LoginVerifier

logger = logging.getLogger(__name__)


def load_site_store(config: AppConfig) -> SiteConfigurationStore:
    if config.site_config_path:
        return SiteConfigurationStore.from_json(config.site_config_path)
    return SiteConfigurationStore.builtin()


class LoginFlow:
    """Wires detection, credential entry and verification for one page."""

    def __init__(
        self,
        config: AppConfig,
        *,
        site_store: Optional[SiteConfigurationStore] = None,
        detector: Optional[LoginDetector] = None,
        manager: Optional[CredentialManager] = None,
        verifier: Optional[LoginVerifier] = None,
        watcher: Optional[FieldRevealWatcher] = None,
        transitions: Optional[PageTransitionDetector] = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.config = config
        self.clock = clock
        self.site_store = site_store if site_store is not None else SiteConfigurationStore.builtin()
        self.detector = detector or LoginDetector(
            config.timeouts,
            site_store=self.site_store,
            max_stale_retries=config.entry.max_stale_retries,
            clock=clock,
        )
        self.watcher = watcher or FieldRevealWatcher(config.timeouts)
        self.manager = manager or CredentialManager(config.entry, config.timeouts, watcher=self.watcher, clock=clock)
        self.verifier = verifier or LoginVerifier(config.verification, config.timeouts, clock=clock)
        self.transitions = transitions or PageTransitionDetector(config.timeouts, clock=clock)

    def run(
        self,
        session: BrowserSession,
        cancel: Optional[threading.Event] = None,
        *,
        require_form: bool = False,
    ) -> LoginAttemptReport:
        """Runs one login attempt and reports what happened.

        A missing login form is reported through ``report.outcome`` unless
        ``require_form`` is set, in which case ``LoginFormNotFoundError`` is
        raised once the failure screenshot has been taken.
        """

        report = LoginAttemptReport(target_url=session.current_url)
        try:
            self._run(session, report, cancel)
        except SessionLostError as exc:
            logger.error("Browser session lost: %s", exc)
            report.outcome = "session_lost"
            report.errors.append(str(exc))
            return report

        try:
            report.final_url = session.current_url
        except SessionError:
            report.final_url = None
        if not report.succeeded:
            self._capture_failure(session, report)
        if require_form and report.outcome == "form_not_found":
            raise LoginFormNotFoundError(report.target_url)
        return report

    def _run(self, session: BrowserSession, report: LoginAttemptReport, cancel: Optional[threading.Event]) -> None:
        domain_mode = DomainMode.for_value(self.config.domain)

        started = self.clock.now()
        form = self.detector.detect(session, domain_mode, cancel)
        if form is None:
            partial = self.detector.detect_partial(session, domain_mode)
            if partial is not None and self.watcher.is_progressive(session, partial):
                logger.info("Progressive login form: password field is not shown yet")
                form = partial
                report.progressive = True
        report.record_duration("detection", self.clock.now() - started)
        if form is None:
            report.outcome = "form_not_found"
            return
        report.strategy = form.strategy
        report.detected_fields = dict(form.descriptions)

        started = self.clock.now()
        initial_url = self.verifier.record_initial_state(session)
        try:
            baseline = self.transitions.capture_state(session)
        except SessionError as exc:
            logger.debug("Could not capture the pre-submission page state: %s", exc)
            baseline = None
        entry = self.manager.run_entry(
            session,
            form,
            self.config.username or "",
            self.config.password or "",
            self.config.domain,
            cancel,
        )
        report.entry = entry.as_dict()
        report.record_duration("entry", self.clock.now() - started)
        if not entry.succeeded:
            report.outcome = "entry_failed"
            return

        settle = self.config.timeouts.max_time_per_method
        transition = self.transitions.watch(session, settle, baseline=baseline, cancel=cancel)
        report.transition = transition.description
        if transition.changed:
            self.transitions.wait_for_stable(session, settle, cancel=cancel)

        timed_out = threading.Event()
        stop = AnyEvent(cancel, timed_out)
        timer = threading.Timer(self.config.timeouts.external_timeout_seconds, timed_out.set)
        timer.daemon = True
        timer.start()
        started = self.clock.now()
        try:
            result = self.verifier.verify_success(
                session,
                initial_url=initial_url,
                site=self.site_store.lookup(initial_url),
                cancel=stop,
            )
        finally:
            timer.cancel()
        report.record_duration("verification", self.clock.now() - started)
        report.verification = result.as_dict()
        report.outcome = result.outcome.value

    def _capture_failure(self, session: BrowserSession, report: LoginAttemptReport) -> None:
        if not self.config.verification.capture_screenshots_on_failure or self.config.screenshot_dir is None:
            return
        directory: Path = self.config.screenshot_dir
        path = directory / f"login_{report.outcome}_{datetime.now():%Y%m%d_%H%M%S}.png"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            session.screenshot(str(path))
        except (OSError, SessionError) as exc:
            logger.warning("Could not capture failure screenshot: %s", exc)
            return
        report.screenshot = str(path)
        logger.info("Failure screenshot saved to %s", path)

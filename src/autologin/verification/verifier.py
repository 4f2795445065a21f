"""Decides whether a submitted login succeeded."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..core.config import AmbiguousPolicy, LoginVerificationConfig, TimeoutConfig
from ..core.models import ConfidenceResult, DetectionSession
from ..core.session import BrowserSession
from ..core.timing import Clock, Deadline, SYSTEM_CLOCK
from ..detection.site_config import SiteLoginConfiguration
from .probes import SUCCESS_SELECTORS, ProbeContext, run_probe
from .weights import (
    FAILURE_CONFIDENCE,
    POSITIVE_PROBES,
    SHORT_CIRCUIT_CONFIDENCE,
    SUCCESS_CONFIDENCE_SUM,
    Probe,
    confidence_for,
)

logger = logging.getLogger(__name__)

PROBE_ORDER = (Probe.URL_CHANGED, Probe.ERROR_MARKERS, Probe.FORM_GONE, Probe.SUCCESS_MARKERS)


class VerificationOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNCERTAIN = "uncertain"


@dataclass
class VerificationResult:
    outcome: VerificationOutcome
    decided_by: str
    probes: List[ConfidenceResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    ambiguous: bool = False
    interrupted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome is VerificationOutcome.SUCCESS

    def __bool__(self) -> bool:
        return self.succeeded

    def probe(self, name: Probe) -> Optional[ConfidenceResult]:
        for result in self.probes:
            if result.probe == name.value:
                return result
        return None

    def as_dict(self) -> Dict[str, object]:
        return {
            "outcome": self.outcome.value,
            "decided_by": self.decided_by,
            "ambiguous": self.ambiguous,
            "interrupted": self.interrupted,
            "elapsed_ms": round(self.elapsed_seconds * 1000),
            "probes": [result.as_dict() for result in self.probes],
        }


_POLICY_OUTCOMES = {
    AmbiguousPolicy.SUCCESS: VerificationOutcome.SUCCESS,
    AmbiguousPolicy.FAILURE: VerificationOutcome.FAILURE,
    AmbiguousPolicy.UNCERTAIN: VerificationOutcome.UNCERTAIN,
}


class LoginVerifier:
    """Runs confidence-weighted probes within a bounded time budget.

    The URL probe runs first and ends verification on its own when it is
    confident enough. Otherwise a decisive error marker means failure, and
    enough combined positive confidence means success. Anything else is
    ambiguous and resolved by ``ambiguous_policy``.
    """

    def __init__(
        self,
        config: Optional[LoginVerificationConfig] = None,
        timeouts: Optional[TimeoutConfig] = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.config = config or LoginVerificationConfig()
        self.timeouts = timeouts or TimeoutConfig()
        self.clock = clock

    def record_initial_state(self, session: BrowserSession) -> str:
        """Pre-submission URL to hand back to ``verify_success``."""

        return session.current_url

    def verify_success(
        self,
        session: BrowserSession,
        *,
        initial_url: Optional[str] = None,
        site: Optional[SiteLoginConfiguration] = None,
        cancel: Optional[threading.Event] = None,
    ) -> VerificationResult:
        verification = DetectionSession()
        started = self.clock.now()
        deadline = Deadline.after(self.config.max_verification_time_seconds, clock=self.clock, cancel=cancel)
        context = ProbeContext(
            initial_url=initial_url or session.current_url,
            success_selectors=tuple(site.success_indicators) + SUCCESS_SELECTORS if site else SUCCESS_SELECTORS,
            failure_selectors=tuple(site.failure_indicators) if site else (),
            interval_seconds=self.timeouts.polling_interval_ms / 1000,
        )
        logger.debug("[%s] Verifying login (initial URL %s)", verification.session_id, context.initial_url)

        if self.config.initial_delay_ms > 0:
            deadline.sleep(self.config.initial_delay_ms / 1000)

        results: Dict[Probe, ConfidenceResult] = {}
        for probe in PROBE_ORDER:
            if deadline.expired:
                logger.debug("[%s] Verification budget exhausted before %s", verification.session_id, probe.value)
                break
            results[probe] = self._run(probe, session, context, deadline, verification)
            decision = self._early_decision(results)
            if decision is not None:
                return self._finish(decision[0], decision[1], results, started, verification, deadline)

        positive = sum(
            results[probe].confidence for probe in POSITIVE_PROBES if probe in results and results[probe].outcome
        )
        if positive >= SUCCESS_CONFIDENCE_SUM:
            return self._finish(VerificationOutcome.SUCCESS, "confidence_sum", results, started, verification, deadline)

        outcome = _POLICY_OUTCOMES[self.config.ambiguous_policy]
        logger.warning(
            "[%s] Verification inconclusive (positive confidence %.2f); applying '%s' policy",
            verification.session_id,
            positive,
            self.config.ambiguous_policy.value,
        )
        return self._finish(outcome, "ambiguous_policy", results, started, verification, deadline, ambiguous=True)

    def _budget(self, probe: Probe, deadline: Deadline) -> Deadline:
        share = deadline.remaining() / 4
        seconds = min(max(share, self.timeouts.min_time_per_method), self.timeouts.max_time_per_method)
        if probe is Probe.ERROR_MARKERS:
            seconds = min(seconds, self.timeouts.quick_error_timeout_ms / 1000)
        return deadline.child(seconds)

    def _run(self, probe, session, context, deadline, verification) -> ConfidenceResult:
        probe_started = self.clock.now()
        outcome, error = run_probe(probe, session, context, self._budget(probe, deadline))
        if outcome is None:
            result = ConfidenceResult(probe.value, False, 0.0, error=error)
        else:
            value, detail = outcome
            result = ConfidenceResult(probe.value, value, confidence_for(probe, value), detail)
        if self.config.enable_timing_logs:
            logger.info(
                "[%s] %s -> %s (%.2f) in %.0fms",
                verification.session_id,
                probe.value,
                result.outcome,
                result.confidence,
                (self.clock.now() - probe_started) * 1000,
            )
        return result

    @staticmethod
    def _early_decision(results: Dict[Probe, ConfidenceResult]):
        url = results.get(Probe.URL_CHANGED)
        if url is not None and url.outcome and url.confidence >= SHORT_CIRCUIT_CONFIDENCE:
            return VerificationOutcome.SUCCESS, "url_changed"
        error = results.get(Probe.ERROR_MARKERS)
        if error is not None and error.outcome and error.confidence >= FAILURE_CONFIDENCE:
            return VerificationOutcome.FAILURE, "error_markers"
        return None

    def _finish(self, outcome, decided_by, results, started, verification, deadline, ambiguous=False):
        result = VerificationResult(
            outcome=outcome,
            decided_by=decided_by,
            probes=list(results.values()),
            elapsed_seconds=self.clock.now() - started,
            ambiguous=ambiguous,
            interrupted=deadline.cancelled,
        )
        logger.info(
            "[%s] Login verification: %s (decided by %s in %.0fms)",
            verification.session_id,
            outcome.value,
            decided_by,
            result.elapsed_seconds * 1000,
        )
        return result

"""Individual checks that hint at the outcome of a submitted login."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from bs4 import BeautifulSoup

from ..core.errors import SessionError, StaleElementError
from ..core.session import BrowserSession
from ..core.timing import Deadline
from .weights import Probe

logger = logging.getLogger(__name__)

ProbeOutcome = Tuple[bool, str]

LOGIN_URL_KEYWORDS = ("login", "signin", "sign-in", "log-in", "logon", "auth")
ERROR_URL_KEYWORDS = ("error", "invalid", "incorrect", "failed", "denied", "wrong")

CRITICAL_KEYWORDS = (
    "invalid", "incorrect", "wrong", "failed", "denied", "unauthorized",
    "locked", "disabled", "suspended", "blocked", "expired",
)
LOGIN_CONTEXT_KEYWORDS = ("login", "signin", "sign in", "password", "username", "credential", "authentication", "auth")

DEFINITE_ERRORS = (
    "invalid credentials", "invalid username", "invalid password",
    "incorrect password", "incorrect username", "incorrect credentials",
    "wrong password", "wrong username", "wrong credentials",
    "login failed", "authentication failed", "signin failed", "sign-in failed",
    "access denied", "login denied", "authentication denied",
    "account locked", "account disabled", "account suspended", "account blocked",
    "password expired", "account expired", "session expired",
)
VALIDATION_HINTS = (
    "required", "cannot be empty", "please enter", "must be", "should be",
    "format", "length", "character", "uppercase", "lowercase", "match",
    "confirm", "valid email", "hint:", "example:", "minimum", "maximum",
)
PAGE_ERROR_PHRASES = (
    "invalid credentials", "invalid username", "invalid password",
    "login failed", "authentication failed", "signin failed",
    "incorrect password", "incorrect username", "incorrect credentials",
    "access denied", "login denied", "authentication denied",
    "account locked", "account disabled", "account suspended",
)

CRITICAL_ERROR_SELECTORS = (
    "div.error", "span.error", "p.error",
    "div.alert-danger", "div.alert-error", "[role='alert']",
    ".login-error", ".authentication-error", ".signin-error", ".auth-error", "#login-error",
)
MODERATE_ERROR_SELECTORS = (
    "div.alert", ".validation-error", ".field-error", ".form-error", ".message-error",
)
SUCCESS_SELECTORS = (
    "a[href*='logout']", "a[href*='signout']", "a[href*='sign-out']",
    "button[onclick*='logout']", "[data-action*='logout']",
    ".user-profile", ".profile-menu", "#user-menu", ".user-dropdown", ".account-menu",
    "span.username", "div.username", ".user-name", "div.welcome", "span.welcome", ".welcome-message",
    "div.dashboard", "#dashboard", ".dashboard-container", ".main-content", "#main-content",
    ".sidebar", "#sidebar", "nav.user-menu",
)
PASSWORD_QUERY = "input[type='password']"


def is_critical_login_error(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in CRITICAL_KEYWORDS) and any(
        word in lowered for word in LOGIN_CONTEXT_KEYWORDS
    )


def is_actual_login_error(text: str) -> bool:
    """Separates real authentication failures from form validation hints."""

    lowered = text.lower()
    if any(phrase in lowered for phrase in DEFINITE_ERRORS):
        return True
    if any(hint in lowered for hint in VALIDATION_HINTS):
        return False
    return is_critical_login_error(lowered)


def looks_like_login_error_url(url: str) -> bool:
    lowered = url.lower()
    return any(word in lowered for word in LOGIN_URL_KEYWORDS) and any(
        word in lowered for word in ERROR_URL_KEYWORDS
    )


def visible_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return " ".join(soup.get_text(" ", strip=True).split())


@dataclass
class ProbeContext:
    """What the probes know about the page as it was before submission."""

    initial_url: str
    success_selectors: Tuple[str, ...] = SUCCESS_SELECTORS
    failure_selectors: Tuple[str, ...] = ()
    interval_seconds: float = 0.1


def poll(check: Callable[[], ProbeOutcome], deadline: Deadline, interval: float) -> ProbeOutcome:
    """Repeats ``check`` until it reports ``True`` or the deadline passes."""

    outcome, detail = check()
    while not outcome and not deadline.expired:
        deadline.sleep(interval)
        if deadline.cancelled:
            break
        outcome, detail = check()
    return outcome, detail


def check_url_changed(session: BrowserSession, context: ProbeContext, deadline: Deadline) -> ProbeOutcome:
    def check() -> ProbeOutcome:
        current = session.current_url
        if current.lower() == context.initial_url.lower():
            return False, "URL unchanged"
        if looks_like_login_error_url(current):
            return False, f"redirected to login error page {current}"
        return True, f"{context.initial_url} -> {current}"

    return poll(check, deadline, context.interval_seconds)


def check_form_gone(session: BrowserSession, context: ProbeContext, deadline: Deadline) -> ProbeOutcome:
    def check() -> ProbeOutcome:
        passwords = session.find_elements(PASSWORD_QUERY)
        if not passwords:
            return True, "no password input on page"
        visible = []
        for element in passwords:
            try:
                if element.is_displayed():
                    visible.append(element)
            except StaleElementError:
                continue
        if not visible:
            return True, "password inputs hidden"
        return False, f"{len(visible)} visible password input(s)"

    return poll(check, deadline, context.interval_seconds)


def _first_displayed(session: BrowserSession, selectors, accept: Callable[[str], bool]) -> Optional[str]:
    for selector in selectors:
        for element in session.find_elements(selector):
            try:
                if not element.is_displayed():
                    continue
                text = (element.text or "").strip()
            except StaleElementError:
                continue
            if accept(text):
                return f"{selector}: {text[:80]}" if text else selector
    return None


def check_success_markers(session: BrowserSession, context: ProbeContext, deadline: Deadline) -> ProbeOutcome:
    def check() -> ProbeOutcome:
        found = _first_displayed(session, context.success_selectors, lambda text: True)
        if found:
            return True, found
        return False, "no success markers"

    return poll(check, deadline, context.interval_seconds)


def check_error_markers(session: BrowserSession, context: ProbeContext, deadline: Deadline) -> ProbeOutcome:
    def check() -> ProbeOutcome:
        if context.failure_selectors:
            found = _first_displayed(session, context.failure_selectors, lambda text: True)
            if found:
                return True, found
        found = _first_displayed(session, CRITICAL_ERROR_SELECTORS, is_critical_login_error)
        if found:
            return True, found
        found = _first_displayed(session, MODERATE_ERROR_SELECTORS, is_actual_login_error)
        if found:
            return True, found
        text = visible_text(session.page_source).lower()
        for phrase in PAGE_ERROR_PHRASES:
            if phrase in text:
                return True, f"page text contains '{phrase}'"
        return False, "no error markers"

    return poll(check, deadline, context.interval_seconds)


PROBES = {
    Probe.URL_CHANGED: check_url_changed,
    Probe.FORM_GONE: check_form_gone,
    Probe.SUCCESS_MARKERS: check_success_markers,
    Probe.ERROR_MARKERS: check_error_markers,
}


def run_probe(
    probe: Probe,
    session: BrowserSession,
    context: ProbeContext,
    deadline: Deadline,
) -> Tuple[Optional[ProbeOutcome], Optional[str]]:
    """Runs one probe; a failed browser command becomes an error string."""

    try:
        return PROBES[probe](session, context, deadline), None
    except SessionError as exc:
        logger.debug("Probe %s failed: %s", probe.value, exc)
        return None, str(exc)

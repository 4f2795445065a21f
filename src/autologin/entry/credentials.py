"""Sequential credential entry, tolerant of progressively revealed fields."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..core.config import CredentialEntryConfig, TimeoutConfig
from ..core.errors import OptionNotFoundError, SessionError, StaleElementError
from ..core.models import DomainMode, FieldRole, LoginFormElements
from ..core.session import BrowserSession, Element, same_element
from ..core.timing import Clock, Deadline, SYSTEM_CLOCK
from ..detection.candidates import RoleLocator
from .disclosure import FieldRevealWatcher
from .keyboard import TextTyper

logger = logging.getLogger(__name__)


class EntryState(Enum):
    AWAITING_USERNAME = "awaiting_username"
    AWAITING_PASSWORD = "awaiting_password"
    AWAITING_DOMAIN = "awaiting_domain"
    AWAITING_SUBMIT = "awaiting_submit"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CredentialEntryResult:
    state: EntryState
    filled: List[FieldRole] = field(default_factory=list)
    submit_method: Optional[str] = None
    failure_reason: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is EntryState.DONE

    def as_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "filled": [role.value for role in self.filled],
            "submit_method": self.submit_method,
            "failure_reason": self.failure_reason,
            "elapsed_ms": round(self.elapsed_seconds * 1000),
        }


class _EntryFailed(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CredentialManager:
    """Fills username, password and optional domain, then submits.

    Each field is filled only once it is present and displayed, so forms that
    reveal the password after the username is typed are handled without a
    second detection pass.
    """

    def __init__(
        self,
        entry: Optional[CredentialEntryConfig] = None,
        timeouts: Optional[TimeoutConfig] = None,
        *,
        watcher: Optional[FieldRevealWatcher] = None,
        typer: Optional[TextTyper] = None,
        locator: Optional[RoleLocator] = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.entry = entry or CredentialEntryConfig()
        self.timeouts = timeouts or TimeoutConfig()
        self.locator = locator or RoleLocator()
        self.watcher = watcher or FieldRevealWatcher(self.timeouts, self.locator)
        self.typer = typer or TextTyper(self.entry, clock)
        self.clock = clock

    def enter_credentials(
        self,
        session: BrowserSession,
        form: LoginFormElements,
        username: str,
        password: str,
        domain: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        return self.run_entry(session, form, username, password, domain, cancel).succeeded

    def run_entry(
        self,
        session: BrowserSession,
        form: LoginFormElements,
        username: str,
        password: str,
        domain: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CredentialEntryResult:
        started = self.clock.now()
        fields: Dict[FieldRole, Element] = dict(form.items())
        result = CredentialEntryResult(state=EntryState.AWAITING_USERNAME)
        last_filled: Optional[Element] = None

        while result.state not in (EntryState.DONE, EntryState.FAILED):
            if cancel is not None and cancel.is_set():
                result.state = EntryState.FAILED
                result.failure_reason = "cancelled"
                break
            logger.debug("Credential entry state: %s", result.state.value)
            try:
                if result.state is EntryState.AWAITING_USERNAME:
                    last_filled = self._enter_field(session, FieldRole.USERNAME, fields, username, cancel)
                    result.filled.append(FieldRole.USERNAME)
                    result.state = EntryState.AWAITING_PASSWORD
                elif result.state is EntryState.AWAITING_PASSWORD:
                    last_filled = self._enter_field(session, FieldRole.PASSWORD, fields, password, cancel)
                    result.filled.append(FieldRole.PASSWORD)
                    result.state = (
                        EntryState.AWAITING_DOMAIN
                        if self._domain_applicable(fields, domain)
                        else EntryState.AWAITING_SUBMIT
                    )
                elif result.state is EntryState.AWAITING_DOMAIN:
                    if not self._enter_domain(session, fields, domain or "", cancel):
                        raise _EntryFailed("domain field could not be filled")
                    last_filled = fields[FieldRole.DOMAIN]
                    result.filled.append(FieldRole.DOMAIN)
                    result.state = EntryState.AWAITING_SUBMIT
                else:
                    if self.entry.submission_delay_ms > 0:
                        self.clock.sleep(self.entry.submission_delay_ms / 1000, cancel)
                    result.submit_method = self._submit(session, fields, last_filled, cancel)
                    result.state = EntryState.DONE
            except _EntryFailed as exc:
                logger.warning("Credential entry failed: %s", exc.reason)
                result.state = EntryState.FAILED
                result.failure_reason = exc.reason

        result.elapsed_seconds = self.clock.now() - started
        if result.succeeded:
            logger.info(
                "Credentials entered (%s) and submitted via %s in %.0fms",
                ", ".join(role.value for role in result.filled),
                result.submit_method,
                result.elapsed_seconds * 1000,
            )
        return result

    # ------------------------------------------------------------------
    # Field handling
    # ------------------------------------------------------------------
    def _await_field(
        self,
        session: BrowserSession,
        role: FieldRole,
        fields: Dict[FieldRole, Element],
        cancel: Optional[threading.Event],
    ) -> Optional[Element]:
        deadline = Deadline.after(self.timeouts.field_reveal_timeout_seconds, clock=self.clock, cancel=cancel)
        known = fields.get(role)
        if known is not None:
            if self.watcher.wait_until_displayed(session, known, deadline):
                return known
            if deadline.expired:
                return None
            logger.debug("Known %s field went stale, searching again", role.value)
        return self.watcher.wait_for_field(
            session,
            role,
            deadline,
            exclude=self._others(fields, role),
            anchors=self._anchors(fields),
        )

    def _enter_field(
        self,
        session: BrowserSession,
        role: FieldRole,
        fields: Dict[FieldRole, Element],
        value: str,
        cancel: Optional[threading.Event],
    ) -> Element:
        element = self._await_field(session, role, fields, cancel)
        if element is None:
            raise _EntryFailed(f"{role.value} field did not appear")
        fields[role] = element

        for attempt in range(self.entry.max_stale_retries + 1):
            try:
                if role is FieldRole.USERNAME and element.tag_name.lower() == "select":
                    self._select_username(element, value)
                else:
                    self.typer.type_into(element, value, cancel)
                return element
            except StaleElementError:
                if attempt == self.entry.max_stale_retries:
                    break
                logger.debug("%s field went stale, locating it again", role.value.capitalize())
                relocated = self.locator.locate(
                    session, role, anchors=self._anchors(fields), exclude=self._others(fields, role)
                )
                if relocated is None:
                    break
                element = fields[role] = relocated
            except SessionError as exc:
                raise _EntryFailed(f"could not fill {role.value} field: {exc}") from exc
        raise _EntryFailed(f"{role.value} field kept going stale")

    def _select_username(self, element: Element, username: str) -> None:
        try:
            element.select_by_value(username)
            return
        except OptionNotFoundError:
            logger.debug("No username option with value '%s', trying visible text", username)
        try:
            element.select_by_visible_text(username)
            return
        except OptionNotFoundError:
            pass

        wanted = username.lower()
        for option in element.find_elements("option"):
            text = (option.text or "").strip()
            if text.lower() == wanted or wanted in text.lower():
                element.select_by_visible_text(text)
                return
        raise OptionNotFoundError(f"No option matches username '{username}'")

    def _domain_applicable(self, fields: Dict[FieldRole, Element], domain: Optional[str]) -> bool:
        if DomainMode.for_value(domain) is DomainMode.SKIP:
            logger.debug("No domain value supplied, skipping domain entry")
            return False
        domain_field = fields.get(FieldRole.DOMAIN)
        if domain_field is None:
            logger.info("No dedicated domain field detected; domain value will not be entered")
            return False
        if same_element(domain_field, fields.get(FieldRole.USERNAME)) or same_element(
            domain_field, fields.get(FieldRole.PASSWORD)
        ):
            logger.warning("Domain field aliases the username or password field, skipping domain entry")
            return False
        return True

    def _enter_domain(
        self,
        session: BrowserSession,
        fields: Dict[FieldRole, Element],
        domain: str,
        cancel: Optional[threading.Event],
    ) -> bool:
        element = fields[FieldRole.DOMAIN]
        deadline = Deadline.after(self.timeouts.field_reveal_timeout_seconds, clock=self.clock, cancel=cancel)
        if not self.watcher.wait_until_displayed(session, element, deadline):
            logger.warning("Domain field never became visible")
            return False
        try:
            if element.tag_name.lower() == "select":
                try:
                    element.select_by_visible_text(domain)
                    return True
                except StaleElementError:
                    raise
                except SessionError as exc:
                    logger.warning("Could not select domain '%s' (%s), typing it instead", domain, exc)
            self.typer.type_into(element, domain, cancel)
            return True
        except SessionError as exc:
            logger.warning("Domain entry failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def _submit(
        self,
        session: BrowserSession,
        fields: Dict[FieldRole, Element],
        last_filled: Optional[Element],
        cancel: Optional[threading.Event],
    ) -> str:
        button = fields.get(FieldRole.SUBMIT)
        if button is not None:
            try:
                button.click()
                return "click"
            except SessionError as exc:
                logger.warning("Clicking the submit control failed: %s", exc)

        deadline = Deadline.after(self.timeouts.submit_search_timeout_seconds, clock=self.clock, cancel=cancel)
        filled = [element for role, element in fields.items() if role is not FieldRole.SUBMIT]
        found = self.watcher.wait_for_field(
            session, FieldRole.SUBMIT, deadline, exclude=filled, anchors=self._anchors(fields)
        )
        if found is not None and not same_element(found, button):
            try:
                found.click()
                fields[FieldRole.SUBMIT] = found
                return "searched_click"
            except SessionError as exc:
                logger.warning("Clicking the located submit control failed: %s", exc)

        if last_filled is None:
            raise _EntryFailed("no submit control and no field to press Enter in")
        logger.info("No submit control found, pressing Enter in the last filled field")
        try:
            last_filled.press_key("Enter")
        except SessionError as exc:
            raise _EntryFailed(f"could not submit the form: {exc}") from exc
        return "enter"

    @staticmethod
    def _anchors(fields: Dict[FieldRole, Element]) -> Dict[FieldRole, Element]:
        return {role: fields[role] for role in (FieldRole.USERNAME, FieldRole.PASSWORD) if role in fields}

    @staticmethod
    def _others(fields: Dict[FieldRole, Element], role: FieldRole) -> List[Element]:
        return [element for other, element in fields.items() if other is not role]

"""Waiting for fields that a page reveals only after earlier input."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from ..core.config import TimeoutConfig
from ..core.errors import SessionError, StaleElementError
from ..core.models import FieldRole, LoginFormElements
from ..core.session import BrowserSession, Element, reduced_implicit_wait
from ..core.timing import Deadline
from ..detection.candidates import RoleLocator

logger = logging.getLogger(__name__)

PASSWORD_QUERY = "input[type='password']"


class FieldRevealWatcher:
    """Polls the page for a role's field until it is present and displayed."""

    def __init__(self, timeouts: Optional[TimeoutConfig] = None, locator: Optional[RoleLocator] = None) -> None:
        self.timeouts = timeouts or TimeoutConfig()
        self.locator = locator or RoleLocator()

    def wait_for_field(
        self,
        session: BrowserSession,
        role: FieldRole,
        deadline: Deadline,
        *,
        exclude: Sequence[Element] = (),
        anchors: Optional[Mapping[FieldRole, Element]] = None,
    ) -> Optional[Element]:
        interval = self.timeouts.polling_interval_ms / 1000
        ceiling = self.timeouts.max_polling_interval_ms / 1000
        polls = 0
        with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
            while not deadline.cancelled:
                polls += 1
                try:
                    element = self.locator.locate(session, role, anchors=anchors, exclude=exclude)
                except SessionError as exc:
                    logger.debug("Lookup for %s field failed: %s", role.value, exc)
                    element = None
                if element is not None:
                    logger.debug("%s field available after %d poll(s)", role.value.capitalize(), polls)
                    return element
                if deadline.expired:
                    break
                deadline.sleep(interval)
                interval = min(interval * self.timeouts.polling_growth_factor, ceiling)
        logger.debug("%s field did not appear after %d poll(s)", role.value.capitalize(), polls)
        return None

    def wait_until_displayed(self, session: BrowserSession, element: Element, deadline: Deadline) -> bool:
        """False when the deadline passes first or the element goes stale."""

        interval = self.timeouts.polling_interval_ms / 1000
        with reduced_implicit_wait(session, self.timeouts.polling_implicit_wait_ms / 1000):
            while not deadline.cancelled:
                try:
                    if element.is_displayed():
                        return True
                except StaleElementError:
                    return False
                except SessionError as exc:
                    logger.debug("Visibility check failed: %s", exc)
                if deadline.expired:
                    break
                deadline.sleep(interval)
        return False

    def is_progressive(self, session: BrowserSession, form: Optional[LoginFormElements]) -> bool:
        """True when only the first step of a multi-step login form is showing.

        That is the case when the username field is visible while no password
        input is visible yet, whether the password is absent from the DOM or
        present but hidden.
        """

        if form is None or form.username_field is None:
            return False
        try:
            if not form.username_field.is_displayed():
                return False
            if form.password_field is not None and form.password_field.is_displayed():
                return False
            return not any(element.is_displayed() for element in session.find_elements(PASSWORD_QUERY))
        except SessionError as exc:
            logger.debug("Progressive form check failed: %s", exc)
            return False

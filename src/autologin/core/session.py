"""Browser-session abstraction consumed by the core.

The detection, entry and verification stages never talk to Playwright
directly; they go through these protocols so the same logic runs against the
real adapter in :mod:`autologin.browser.playwright_session` and against the
in-memory fakes used by the unit tests.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol, Sequence, Tuple

from .errors import SessionError

logger = logging.getLogger(__name__)

XPATH_PREFIX = "xpath="


def xpath(expression: str) -> str:
    """Marks ``expression`` as an XPath selector for ``find_elements``."""

    return f"{XPATH_PREFIX}{expression}"


class Element(Protocol):
    @property
    def tag_name(self) -> str: ...

    @property
    def text(self) -> str: ...

    def get_attribute(self, name: str) -> Optional[str]: ...

    def is_displayed(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    def size(self) -> Optional[Tuple[float, float]]: ...

    def clear(self) -> None: ...

    def click(self) -> None: ...

    def send_keys(self, text: str) -> None: ...

    def press_key(self, key: str) -> None: ...

    def select_by_visible_text(self, text: str) -> None: ...

    def select_by_value(self, value: str) -> None: ...

    def find_elements(self, selector: str) -> Sequence["Element"]: ...

    def same_as(self, other: "Element") -> bool: ...


class BrowserSession(Protocol):
    @property
    def current_url(self) -> str: ...

    @property
    def title(self) -> str: ...

    @property
    def page_source(self) -> str: ...

    @property
    def ready_state(self) -> str: ...

    def find_elements(self, selector: str) -> Sequence[Element]: ...

    def find_shadow_elements(self, selector: str) -> Sequence[Element]: ...

    def get_implicit_wait(self) -> float: ...

    def set_implicit_wait(self, seconds: float) -> None: ...

    def screenshot(self, path: str) -> None: ...


def same_element(first: Optional[Element], second: Optional[Element]) -> bool:
    """Identity check that tolerates ``None`` and failing comparisons."""

    if first is None or second is None:
        return False
    if first is second:
        return True
    try:
        return first.same_as(second)
    except SessionError:
        return False


@contextmanager
def reduced_implicit_wait(session: BrowserSession, seconds: float) -> Iterator[float]:
    """Temporarily lowers the session's implicit element wait.

    The original value is restored on every exit path. Yields the value that
    was in effect before the call.
    """

    original = session.get_implicit_wait()
    session.set_implicit_wait(seconds)
    try:
        yield original
    finally:
        try:
            session.set_implicit_wait(original)
        except SessionError:
            logger.warning("Could not restore implicit wait to %.3fs", original, exc_info=True)

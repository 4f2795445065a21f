"""Playwright implementation of the browser-session protocols."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from playwright.sync_api import ElementHandle, Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..core.errors import OptionNotFoundError, SessionError, SessionLostError, StaleElementError

logger = logging.getLogger(__name__)

LOST_MARKERS = ("has been closed", "Target closed", "Browser closed", "Connection closed")
STALE_MARKERS = (
    "not attached",
    "detached",
    "Execution context was destroyed",
    "JSHandle is disposed",
    "Cannot find context with specified id",
)

_FIND_OPTION = """(el, wanted) => {
    const [mode, text] = wanted;
    const option = Array.from(el.options || []).find((o) =>
        mode === 'value' ? o.value === text : o.text.trim() === text || o.label === text);
    return option ? option.value : null;
}"""


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Maps Playwright exceptions onto the package's session errors."""

    try:
        yield
    except PlaywrightTimeoutError as exc:
        raise SessionError(f"{action} timed out: {exc.message}") from exc
    except PlaywrightError as exc:
        message = exc.message or str(exc)
        if any(marker in message for marker in LOST_MARKERS):
            raise SessionLostError(f"{action}: browser session lost ({message})") from exc
        if any(marker in message for marker in STALE_MARKERS):
            raise StaleElementError(f"{action}: {message}") from exc
        raise SessionError(f"{action} failed: {message}") from exc


class PlaywrightElement:
    def __init__(self, handle: ElementHandle, page: Page) -> None:
        self.handle = handle
        self.page = page

    @property
    def tag_name(self) -> str:
        with translate_errors("tag_name"):
            return self.handle.evaluate("(el) => el.tagName.toLowerCase()")

    @property
    def text(self) -> str:
        with translate_errors("text"):
            return self.handle.evaluate("(el) => (el.innerText ?? el.textContent ?? '').trim()")

    def get_attribute(self, name: str) -> Optional[str]:
        with translate_errors(f"get_attribute({name})"):
            return self.handle.get_attribute(name)

    def is_displayed(self) -> bool:
        with translate_errors("is_displayed"):
            return self.handle.is_visible()

    def is_enabled(self) -> bool:
        with translate_errors("is_enabled"):
            return self.handle.is_enabled()

    def size(self) -> Optional[Tuple[float, float]]:
        with translate_errors("size"):
            box = self.handle.bounding_box()
        if box is None:
            return None
        return box["width"], box["height"]

    def clear(self) -> None:
        with translate_errors("clear"):
            self.handle.fill("")

    def click(self) -> None:
        with translate_errors("click"):
            self.handle.click()

    def send_keys(self, text: str) -> None:
        with translate_errors("send_keys"):
            self.handle.focus()
            self.page.keyboard.type(text)

    def press_key(self, key: str) -> None:
        with translate_errors(f"press_key({key})"):
            self.handle.press(key)

    def select_by_visible_text(self, text: str) -> None:
        self._select("text", text)

    def select_by_value(self, value: str) -> None:
        self._select("value", value)

    def _select(self, mode: str, wanted: str) -> None:
        with translate_errors(f"select by {mode}"):
            value = self.handle.evaluate(_FIND_OPTION, [mode, wanted])
            if value is None:
                raise OptionNotFoundError(f"No option with {mode} '{wanted}'")
            self.handle.select_option(value=value)

    def find_elements(self, selector: str) -> List["PlaywrightElement"]:
        with translate_errors(f"find_elements({selector})"):
            return [PlaywrightElement(handle, self.page) for handle in self.handle.query_selector_all(selector)]

    def same_as(self, other) -> bool:
        if not isinstance(other, PlaywrightElement):
            return False
        with translate_errors("same_as"):
            return bool(self.handle.evaluate("(a, b) => a === b", other.handle))

    def __repr__(self) -> str:
        return f"PlaywrightElement({self.handle!r})"


class PlaywrightSession:
    """Adapts a Playwright ``Page`` to :class:`autologin.core.session.BrowserSession`.

    Playwright has no implicit element wait; the value is mirrored onto the
    page's default action timeout so bounded polling loops never block on a
    single slow action.
    """

    def __init__(self, page: Page, default_timeout_ms: int = 30000) -> None:
        self.page = page
        self._implicit_wait = default_timeout_ms / 1000
        page.set_default_timeout(default_timeout_ms)

    @property
    def current_url(self) -> str:
        return self.page.url

    @property
    def title(self) -> str:
        with translate_errors("title"):
            return self.page.title()

    @property
    def page_source(self) -> str:
        with translate_errors("page_source"):
            return self.page.content()

    @property
    def ready_state(self) -> str:
        with translate_errors("ready_state"):
            return self.page.evaluate("() => document.readyState")

    def navigate(self, url: str) -> None:
        with translate_errors(f"goto({url})"):
            self.page.goto(url, wait_until="domcontentloaded")

    def find_elements(self, selector: str) -> List[PlaywrightElement]:
        with translate_errors(f"find_elements({selector})"):
            return [PlaywrightElement(handle, self.page) for handle in self.page.query_selector_all(selector)]

    def find_shadow_elements(self, selector: str) -> List[PlaywrightElement]:
        # Playwright CSS already pierces open shadow roots; keep only shadow hosted nodes.
        with translate_errors(f"find_shadow_elements({selector})"):
            handles = self.page.query_selector_all(selector)
            return [
                PlaywrightElement(handle, self.page)
                for handle in handles
                if handle.evaluate("(el) => el.getRootNode() instanceof ShadowRoot")
            ]

    def get_implicit_wait(self) -> float:
        return self._implicit_wait

    def set_implicit_wait(self, seconds: float) -> None:
        with translate_errors("set_implicit_wait"):
            self.page.set_default_timeout(max(1.0, seconds * 1000))
        self._implicit_wait = seconds

    def screenshot(self, path: str) -> None:
        with translate_errors("screenshot"):
            self.page.screenshot(path=path, full_page=True)


@contextmanager
def open_session(headless: bool = False, default_timeout_ms: int = 30000) -> Iterator[PlaywrightSession]:
    """Launches Chromium and yields a session on a fresh page."""

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=headless)
        context = browser.new_context()
        page = context.new_page()
        logger.debug("Chromium launched (headless=%s)", headless)
        try:
            yield PlaywrightSession(page, default_timeout_ms)
        finally:
            browser.close()

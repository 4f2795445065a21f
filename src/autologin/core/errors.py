"""Exception hierarchy shared by the detection, entry and verification stages."""

from __future__ import annotations


class AutoLoginError(Exception):
    """Base class for every error raised by the package."""


class ConfigurationError(AutoLoginError):
    """Raised when configuration values are inconsistent."""


class SessionError(AutoLoginError):
    """A single browser command failed; the session itself is still usable."""


class StaleElementError(SessionError):
    """The element handle no longer points to a node attached to the DOM."""


class OptionNotFoundError(SessionError):
    """A ``<select>`` has no option matching the requested text or value."""


class SessionLostError(AutoLoginError):
    """The browser or its connection is gone. Never swallowed by the core."""


class LoginFormNotFoundError(AutoLoginError):
    """Raised by the flow layer when detection produced no usable form."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No login form detected on {url}")
        self.url = url

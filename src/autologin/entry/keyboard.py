"""Keyboard entry with human-like pacing."""

from __future__ import annotations

import logging
import math
import random
import threading
from typing import List, Optional

from ..core.config import CredentialEntryConfig, TypingMode
from ..core.errors import SessionError, StaleElementError
from ..core.session import Element
from ..core.timing import Clock, SYSTEM_CLOCK

logger = logging.getLogger(__name__)


def chunk_size_for(text: str, max_chunk_size: int = 5) -> int:
    return min(max_chunk_size, max(1, math.ceil(len(text) / 2)))


def split_chunks(text: str, max_chunk_size: int = 5) -> List[str]:
    """Splits ``text`` into chunks whose concatenation is exactly ``text``."""

    if not text:
        return []
    size = chunk_size_for(text, max_chunk_size)
    return [text[index:index + size] for index in range(0, len(text), size)]


class TextTyper:
    def __init__(
        self,
        config: Optional[CredentialEntryConfig] = None,
        clock: Clock = SYSTEM_CLOCK,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or CredentialEntryConfig()
        self.clock = clock
        self.rng = rng or random.Random()

    def type_into(self, element: Element, text: str, cancel: Optional[threading.Event] = None) -> None:
        """Clears ``element``, focuses it and types ``text``.

        When a command fails half way, the field is cleared and the full value
        is sent in one go. Stale handles propagate so the caller can re-locate.
        """

        try:
            element.clear()
            element.click()
            if self.config.typing_mode is TypingMode.DIRECT:
                element.send_keys(text)
            elif self.config.typing_mode is TypingMode.PER_CHARACTER:
                self._send_pieces(element, list(text), cancel)
            else:
                self._send_pieces(element, split_chunks(text, self.config.max_chunk_size), cancel)
        except StaleElementError:
            raise
        except SessionError as exc:
            logger.warning("Paced typing failed (%s), sending the full value directly", exc)
            element.clear()
            element.send_keys(text)

        if self.config.post_entry_delay_ms > 0:
            self.clock.sleep(self.config.post_entry_delay_ms / 1000, cancel)

    def _send_pieces(self, element: Element, pieces: List[str], cancel: Optional[threading.Event]) -> None:
        for index, piece in enumerate(pieces):
            element.send_keys(piece)
            if index < len(pieces) - 1 and self.config.max_delay_ms > 0:
                delay = self.rng.randint(self.config.min_delay_ms, self.config.max_delay_ms)
                self.clock.sleep(delay / 1000, cancel)

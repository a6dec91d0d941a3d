"""Audio output session used by the playback engine."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LoggingAudioSession:
    """
    Session for hosts without a shared audio mixer.  It only records the
    requested mode; hosts that can lower other streams plug in their own
    ``AudioSession``.
    """

    def __init__(self) -> None:
        self.active = False
        self.duck_others = False

    def activate(self, duck_others: bool) -> None:
        if self.active and self.duck_others == duck_others:
            return
        self.active = True
        self.duck_others = duck_others
        logger.info("audio session active (duck_others=%s)", duck_others)

    def deactivate(self) -> None:
        if not self.active:
            return
        self.active = False
        logger.info("audio session released")

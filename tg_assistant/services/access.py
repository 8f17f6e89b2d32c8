"""Static allow-list of Telegram sender ids."""

from __future__ import annotations

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class AccessGate:
    """Exact-match membership check against configured sender ids.

    An empty list lets everyone through.  That mode is meant for local
    debugging, so it is logged loudly at construction.
    """

    def __init__(self, allowed_ids: Iterable[str] = ()):
        self._allowed = frozenset(str(i).strip() for i in allowed_ids if str(i).strip())
        if not self._allowed:
            logger.warning(
                "ALLOWED_USER_IDS is empty: the bot will answer ANY Telegram user. "
                "Set it before exposing the webhook publicly.",
            )

    @property
    def is_open(self) -> bool:
        return not self._allowed

    def is_allowed(self, sender_id: str) -> bool:
        if self.is_open:
            return True
        return sender_id in self._allowed

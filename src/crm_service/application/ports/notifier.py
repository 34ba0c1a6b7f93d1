from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Transient user-facing notifications (toasts)."""

    async def success(self, text: str) -> None: ...

    async def error(self, text: str) -> None: ...


class LoggingNotifier:
    """Fallback notifier for contexts without a connected client."""

    async def success(self, text: str) -> None:
        logger.info("notify success: %s", text)

    async def error(self, text: str) -> None:
        logger.warning("notify error: %s", text)

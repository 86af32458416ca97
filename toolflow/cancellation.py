"""Cooperative cancellation for in-flight workflow runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Shared cancellation signal handed to every step of a run.

    Cancelling only raises the signal. Whoever holds the token decides
    when to observe it.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "Workflow run cancelled.") -> bool:
        """Raise the signal. Returns ``False`` if it was already raised."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        """Suspend until the signal is raised."""
        await self._event.wait()


class CancellationRegistry:
    """One cancellation token per in-flight run id."""

    def __init__(self) -> None:
        self._tokens: Dict[str, CancellationToken] = {}

    def register(self, run_id: str) -> CancellationToken:
        if run_id in self._tokens:
            raise ValueError(f"Run {run_id} is already registered")
        token = CancellationToken()
        self._tokens[run_id] = token
        return token

    def cancel(self, run_id: str, reason: str = "Workflow run cancelled.") -> bool:
        """Raise the signal for ``run_id``.

        Returns ``False`` when the run is unknown, already terminal, or
        already cancelled.
        """
        token = self._tokens.get(run_id)
        if token is None:
            return False
        raised = token.cancel(reason)
        if raised:
            logger.info(f"Cancellation requested for run_id={run_id}")
        return raised

    def release(self, run_id: str) -> None:
        """Forget ``run_id``. Safe to call more than once."""
        self._tokens.pop(run_id, None)

    def active_run_ids(self) -> list[str]:
        return list(self._tokens)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

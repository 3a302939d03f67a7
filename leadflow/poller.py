"""Polling for externally started asynchronous runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from .errors import PollTimeout
from .utils.progress import poll_progress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


class ResultSource(Protocol):
    async def fetch_result(self, run_id: str) -> list[Any]:
        ...


class RunPoller:
    """Waits for a remote run to produce a non-empty result set."""

    def __init__(
        self,
        client: ResultSource,
        max_attempts: int = 60,
        interval: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    async def poll(
        self,
        task_id: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[Any]:
        """Poll ``task_id`` at a fixed interval until it returns records.

        Fetch errors count as "not ready yet"; only running out of attempts
        is fatal.

        Raises:
            PollTimeout: ``max_attempts`` polls returned no records.
        """
        max_attempts = max_attempts or self.max_attempts
        interval = self.interval if interval is None else interval

        for attempt in range(max_attempts):
            await self._sleep(interval)
            if on_progress is not None:
                await on_progress(poll_progress(attempt, max_attempts))
            try:
                results = await self.client.fetch_result(task_id)
            except Exception as exc:
                logger.debug(f"Run {task_id} not ready (poll {attempt + 1}): {exc}")
                continue
            if isinstance(results, list) and results:
                logger.info(
                    f"Run {task_id} returned {len(results)} items after {attempt + 1} polls"
                )
                return results

        raise PollTimeout(task_id, max_attempts)

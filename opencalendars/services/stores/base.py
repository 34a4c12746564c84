import asyncio
import contextlib
import time
from abc import ABC, abstractmethod
from typing import Callable

from loguru import logger

Clock = Callable[[], float]


class BaseMemoryStore(ABC):
    """
    Abstract base class for process-local stores with a periodic sweep.

    Each store owns its sweep task: ``start()`` schedules it on the running
    event loop and ``stop()`` cancels it and waits for it to finish, so
    shutdown and tests can stop sweeping deterministically.

    Note:
        Entries live in this process only. Running several workers or
        instances splits the data between them, so OAuth states issued by
        one instance fail validation on another and rate limits apply per
        instance. Replace the store with a shared backend before scaling out.
    """

    def __init__(self, sweep_interval: float, clock: Clock = time.time):
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sweeper: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Whether the sweep task is scheduled and not finished"""
        return self._sweeper is not None and not self._sweeper.done()

    def now(self) -> float:
        return self._clock()

    @abstractmethod
    def sweep(self) -> int:
        """
        Remove expired entries.

        Returns:
            int: Number of entries removed
        """

    def start(self) -> None:
        """Schedule the periodic sweep on the running event loop"""
        if self.is_running:
            return

        self._sweeper = asyncio.create_task(
            self._sweep_loop(), name=f"{self.__class__.__name__}-sweeper"
        )
        logger.debug(f"Sweep started for {self.__class__.__name__} every {self.sweep_interval}s")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to exit"""
        if self._sweeper is None:
            return

        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper

        self._sweeper = None
        logger.debug(f"Sweep stopped for {self.__class__.__name__}")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)

            try:
                removed = self.sweep()
            except Exception:
                logger.exception(f"Sweep failed for {self.__class__.__name__}")
                continue

            if removed:
                logger.debug(f"{self.__class__.__name__} swept {removed} expired entries")

    @abstractmethod
    def __len__(self) -> int:
        """Number of live entries, expired or not"""

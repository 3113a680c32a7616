"""Batch runner for asynchronous loaders that fill a store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable


logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class BatchFetcher:
    """Collects loader callbacks and runs them together."""

    def __init__(self) -> None:
        self._loaders: list[Loader] = []

    @property
    def loaders(self) -> list[Loader]:
        return list(self._loaders)

    def fetch(self, loader: Loader) -> None:
        if not callable(loader):
            raise TypeError("loader must be callable")
        self._loaders.append(loader)

    def clear(self) -> None:
        self._loaders.clear()

    async def fetch_all(self) -> list[Any]:
        """Start every registered loader and wait for all of them.

        The first exception raised by a loader propagates to the caller.
        A loader failing before it returns an awaitable cancels the ones
        already started.
        """
        logger.debug("Running %d loaders", len(self._loaders))
        tasks: list[asyncio.Future[Any]] = []
        try:
            for loader in self._loaders:
                tasks.append(asyncio.ensure_future(loader()))
        except Exception:
            for task in tasks:
                task.cancel()
            raise
        return list(await asyncio.gather(*tasks))

"""Bridge from synchronous Celery tasks to the async services."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from catalog_sync.infrastructure.database.connection import get_engine
from catalog_sync.services.container import SyncServices, get_services

T = TypeVar("T")


def run_async(operation: Callable[[SyncServices], Awaitable[T]]) -> T:
    """
    Run ``operation`` on a fresh event loop.

    Pooled connections are bound to the loop that opened them, so the HTTP
    client and the engine pool are released before the loop closes. The
    service bundle itself, including orchestrator state, survives across tasks.
    """

    async def main() -> T:
        services = get_services()
        try:
            return await operation(services)
        finally:
            await services.client.close()
            await get_engine().dispose()

    return asyncio.run(main())

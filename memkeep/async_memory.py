"""asyncio façade over the synchronous memory client."""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from memkeep.context import OperationContext
from memkeep.memory import MemoryClient, RetentionStatus
from memkeep.options import AddOptions, DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.schema import Memory

logger = logging.getLogger(__name__)


class AsyncMemoryClient:
    """Runs ``MemoryClient`` operations in worker threads.

    Every operation returns the ``asyncio.Task`` immediately; await it for the
    result. Must be used from inside a running event loop.

    Usage::

        client = AsyncMemoryClient(MemoryClient.from_config(config))
        task = client.add("User likes coffee", AddOptions(user_id="u1"))
        memory = await task
        await client.close()
    """

    def __init__(self, client: MemoryClient):
        self.client = client
        self._active_tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of operations not yet finished."""
        return len(self._active_tasks)

    def _spawn(self, func: Callable[..., Any], *args: Any) -> asyncio.Task:
        task = asyncio.create_task(asyncio.to_thread(func, *args))
        self._active_tasks.add(task)
        task.add_done_callback(self._active_tasks.discard)
        return task

    def add(
        self, content: str, options: Optional[AddOptions] = None, ctx: Optional[OperationContext] = None
    ) -> "asyncio.Task[Memory]":
        return self._spawn(self.client.add, content, options, ctx)

    def search(
        self, query: str, options: Optional[SearchOptions] = None, ctx: Optional[OperationContext] = None
    ) -> "asyncio.Task[List[Memory]]":
        return self._spawn(self.client.search, query, options, ctx)

    def get(self, memory_id: int, ctx: Optional[OperationContext] = None) -> "asyncio.Task[Memory]":
        return self._spawn(self.client.get, memory_id, ctx)

    def update(self, memory_id: int, content: str, ctx: Optional[OperationContext] = None) -> "asyncio.Task[Memory]":
        return self._spawn(self.client.update, memory_id, content, ctx)

    def delete(self, memory_id: int, ctx: Optional[OperationContext] = None) -> "asyncio.Task[None]":
        return self._spawn(self.client.delete, memory_id, ctx)

    def get_all(
        self, options: Optional[GetAllOptions] = None, ctx: Optional[OperationContext] = None
    ) -> "asyncio.Task[List[Memory]]":
        return self._spawn(self.client.get_all, options, ctx)

    def delete_all(
        self, options: Optional[DeleteAllOptions] = None, ctx: Optional[OperationContext] = None
    ) -> "asyncio.Task[int]":
        return self._spawn(self.client.delete_all, options, ctx)

    def reinforce(self, memory_id: int, ctx: Optional[OperationContext] = None) -> "asyncio.Task[Memory]":
        return self._spawn(self.client.reinforce, memory_id, ctx)

    def refresh_retention(
        self, options: Optional[GetAllOptions] = None, ctx: Optional[OperationContext] = None
    ) -> "asyncio.Task[List[RetentionStatus]]":
        return self._spawn(self.client.refresh_retention, options, ctx)

    async def wait(self) -> None:
        """Wait for every outstanding operation. Failures stay on their tasks."""
        while self._active_tasks:
            logger.debug(f"Waiting for {len(self._active_tasks)} active task(s) to finish")
            await asyncio.gather(*list(self._active_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Drain outstanding operations, then close the wrapped client."""
        await self.wait()
        await asyncio.to_thread(self.client.close)

import asyncio
import inspect
from typing import Any, Callable, List, Optional


async def invoke_handler(handler: Callable[..., Any], *args) -> Any:
    """Call a sync or async handler and await the result when needed."""
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def cancel_tasks_with_timeout(
    tasks: List[Optional[asyncio.Task]],
    timeout: float = 2.0,
    logger=None
) -> bool:
    """
    Cancel multiple tasks with timeout protection.

    Args:
        tasks: List of asyncio tasks (None entries are ignored)
        timeout: Maximum time to wait for cancellation
        logger: Optional logger for timeout warnings

    Returns:
        bool: True if all tasks cancelled within timeout, False if timeout occurred
    """
    active_tasks = [task for task in tasks if task and not task.done()]
    if not active_tasks:
        return True

    for task in active_tasks:
        task.cancel()

    try:
        await asyncio.wait_for(
            asyncio.gather(*active_tasks, return_exceptions=True),
            timeout=timeout
        )
        return True
    except asyncio.TimeoutError:
        if logger:
            remaining = [task for task in active_tasks if not task.done()]
            logger.warning("Task cancellation timed out", timeout=timeout, remaining=len(remaining))
        return False


async def safe_close_connection(connection, timeout: float = 1.0, logger=None) -> bool:
    """
    Close a connection with timeout protection.

    Returns:
        bool: True if closed within timeout, False on timeout or error
    """
    if not connection:
        return True

    try:
        await asyncio.wait_for(connection.close(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        if logger:
            logger.warning("Connection close timed out", timeout=timeout)
        return False
    except (OSError, RuntimeError) as e:
        if logger:
            logger.error("Error closing connection", error=str(e))
        return False


class TaskManager:
    """
    Tracks background tasks owned by one component so they can be
    cancelled together on shutdown.
    """

    def __init__(self, name: str = "task_manager"):
        self.name = name
        self._tasks: List[asyncio.Task] = []
        self._should_stop = False

    def create_task(self, coro, name: str = None) -> asyncio.Task:
        """Create and track a task."""
        if self._should_stop:
            coro.close()
            raise RuntimeError(f"Cannot create task '{name}' - manager is stopping")

        task_name = f"{self.name}.{name}" if name else f"{self.name}.task_{len(self._tasks)}"
        task = asyncio.create_task(coro, name=task_name)
        self._tasks.append(task)

        def cleanup_task(completed_task):
            if completed_task in self._tasks:
                self._tasks.remove(completed_task)

        task.add_done_callback(cleanup_task)
        return task

    async def wait_all(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, is done."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self, timeout: float = 2.0, logger=None) -> bool:
        """Cancel all managed tasks. Safe to call more than once."""
        self._should_stop = True

        current = asyncio.current_task()
        active_tasks = [task for task in self._tasks if not task.done() and task is not current]
        success = await cancel_tasks_with_timeout(active_tasks, timeout, logger)
        self._tasks.clear()
        return success

    @property
    def active_task_count(self) -> int:
        return len([task for task in self._tasks if not task.done()])

    @property
    def is_stopping(self) -> bool:
        return self._should_stop

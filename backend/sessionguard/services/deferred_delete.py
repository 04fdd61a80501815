"""Best-effort delayed removal of superseded sessions."""
import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from sessionguard.services.session_store import SessionStore, StoreError

logger = logging.getLogger(__name__)


class DeferredDeleter:
    """Fire-and-forget deletion tasks on the running event loop.

    A pending deletion is a sleeping task, not a thread; only the store call
    itself borrows a worker from the shared threadpool. There is no
    cancellation and no retry, and a session that is already gone when the
    task wakes up is a no-op.
    """

    def __init__(self):
        # The loop only keeps weak references to tasks.
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule_delete(self, store: SessionStore, session_id: str, delay: float) -> asyncio.Task:
        """Delete session_id from store after delay seconds without blocking.

        Must be called from code running on the event loop.
        """
        task = asyncio.get_running_loop().create_task(self._delete_later(store, session_id, delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.debug(f"Scheduled deletion of {store.kind} session in {delay}s")
        return task

    @staticmethod
    async def _delete_later(store: SessionStore, session_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            deleted = await run_in_threadpool(store.delete, session_id)
        except StoreError as e:
            logger.warning(f"Deferred deletion of {store.kind} session failed: {e}")
            return
        except Exception:
            # Nobody awaits this task, so nothing else would report it.
            logger.exception(f"Unexpected error in deferred deletion of {store.kind} session")
            return

        if deleted:
            logger.debug(f"Deferred deletion removed {store.kind} session")
        else:
            logger.debug(f"Deferred deletion found no {store.kind} session to remove")

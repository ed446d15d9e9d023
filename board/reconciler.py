"""
reconciler.py - Optimistic drag-and-drop for the board.

The reconciler keeps the local task collection, derives the columns from it
and applies status changes before the server confirms them. Each card moves
through Settled -> Pending -> Settled on success, or Pending -> RollingBack ->
Settled on failure.

Everything runs on one asyncio event loop. Drags of the same card are
serialized: a second drag waits for the first request to finish, so status
writes for one task reach the server in the order they were made. Drags of
different cards run concurrently. A refresh whose request was sent before a
later move was confirmed is discarded on arrival, so a stale snapshot never
moves a settled card back.

Known limitation: a failed drag restores the whole collection from the
snapshot taken when that drag started. Any other optimistic edit made while
it was in flight is visually reverted as well, until the next refresh.
"""

import asyncio
import copy
import enum
import logging
from typing import Callable, Optional

from board.api import BoardApiClient, BoardRequestError
from board.columns import BoardColumn, group_columns
from board.config import BOARD_BACKGROUND_REFRESH

logger = logging.getLogger(__name__)


class CardState(str, enum.Enum):
    SETTLED = "settled"
    PENDING = "pending"
    ROLLING_BACK = "rolling_back"


class BoardReconciler:
    def __init__(
        self,
        api: BoardApiClient,
        tasks: Optional[list[dict]] = None,
        background_refresh: bool = BOARD_BACKGROUND_REFRESH,
        on_change: Optional[Callable[[dict], None]] = None,
    ):
        self.api = api
        self.background_refresh = background_refresh
        self.on_change = on_change
        self._tasks: list[dict] = copy.deepcopy(list(tasks or []))
        self._states: dict[int, CardState] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}
        # bumped on every confirmed move and every applied refresh
        self._generation = 0
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    @property
    def tasks(self) -> list[dict]:
        return copy.deepcopy(self._tasks)

    def columns(self) -> dict[str, list[dict]]:
        return group_columns(self._tasks)

    def card_state(self, task_id: int) -> CardState:
        return self._states.get(task_id, CardState.SETTLED)

    def _find(self, task_id: int) -> Optional[dict]:
        for t in self._tasks:
            if t.get("id") == task_id:
                return t
        return None

    def _notify(self):
        if self.on_change is not None:
            self.on_change(self.columns())

    # ------------------------------------------------------------------
    async def load(self):
        """Replace the local collection with the server's."""
        self._tasks = await self.api.list_tasks()
        self._generation += 1
        self._notify()

    async def refresh(self) -> bool:
        """
        Re-fetch the collection. Cards whose update is still in flight keep
        their optimistic status so the refresh does not undo a drag.

        A response is discarded when a move was confirmed, or another refresh
        applied, after this one was sent: its snapshot predates state the
        board already shows. Returns True when the response was applied.
        """
        started = self._generation
        fresh = await self.api.list_tasks()
        if started != self._generation:
            logger.debug("Discarding refresh that started before the latest board change")
            return False

        pending = {
            t["id"]: t["status"] for t in self._tasks
            if self.card_state(t.get("id")) is CardState.PENDING
        }
        for t in fresh:
            if t.get("id") in pending:
                t["status"] = pending[t["id"]]
        self._tasks = fresh
        self._generation += 1
        self._notify()
        return True

    async def on_drag_end(self, task_id: int, target_status) -> bool:
        """
        Handle a card dropped on a column. Returns True when the move was
        confirmed by the server, False when it was a no-op or rolled back.
        Dropping outside any column (target_status None), onto the card's own
        column, or for an unknown card does nothing.
        """
        if target_status is None:
            return False
        target = BoardColumn(target_status).value

        lock = self._locks.setdefault(task_id, asyncio.Lock())
        self._lock_users[task_id] = self._lock_users.get(task_id, 0) + 1
        try:
            async with lock:
                return await self._move(task_id, target)
        finally:
            # drop the lock once no drag of this card holds or waits for it
            self._lock_users[task_id] -= 1
            if not self._lock_users[task_id]:
                del self._lock_users[task_id]
                self._locks.pop(task_id, None)

    async def _move(self, task_id: int, target: str) -> bool:
        task = self._find(task_id)
        if task is None or task.get("status") == target:
            return False

        snapshot = copy.deepcopy(self._tasks)
        task["status"] = target
        self._states[task_id] = CardState.PENDING
        self._notify()

        try:
            await self.api.update_task(task_id, {"status": target})
        except BoardRequestError as e:
            self._rollback(task_id, snapshot, e)
            return False
        except Exception as e:
            self._rollback(task_id, snapshot, e)
            raise

        self._states.pop(task_id, None)
        self._generation += 1
        if self.background_refresh:
            self._schedule_refresh()
        return True

    def _rollback(self, task_id: int, snapshot: list[dict], error: Exception):
        self._states[task_id] = CardState.ROLLING_BACK
        logger.warning(f"Moving task {task_id} failed ({error}); restoring the board")
        self._tasks = snapshot
        self._notify()
        self._states.pop(task_id, None)

    # ------------------------------------------------------------------
    def _schedule_refresh(self):
        job = asyncio.get_running_loop().create_task(self._refresh_quietly())
        self._background.add(job)
        job.add_done_callback(self._background.discard)

    async def _refresh_quietly(self):
        try:
            await self.refresh()
        except BoardRequestError as e:
            logger.warning(f"Background refresh failed: {e}")

    async def wait_idle(self):
        """Wait for background refreshes scheduled so far (used on teardown and in tests)."""
        while self._background:
            await asyncio.gather(*list(self._background))

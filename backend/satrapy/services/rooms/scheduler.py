import itertools
import threading
import time
from typing import Callable, Dict, List, Optional


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class ScheduledTask:
    def __init__(self, task_id: int, room_id: str, due_at: int, callback: Callable[[], None]):
        self.id = task_id
        self.room_id = room_id
        self.due_at = due_at
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def __repr__(self):
        return f"<ScheduledTask {self.id} room={self.room_id} due_at={self.due_at}>"


class TaskScheduler:
    """Room-scoped delayed callbacks that can be cancelled per room.

    - With `spawn`/`sleep` (socketio.start_background_task / socketio.sleep)
      each task runs on its own background task
    - Without them nothing fires on its own; `run_due(now)` fires whatever
      is due, which is how tests drive time
    - A task fires at most once and never after cancellation
    """

    def __init__(self, spawn=None, sleep=None, clock: Callable[[], int] = wall_clock_ms, logger=None):
        self._spawn = spawn
        self._sleep = sleep
        self._clock = clock
        self._logger = logger
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._tasks: Dict[str, List[ScheduledTask]] = {}

    def schedule(self, room_id: str, delay_ms: int, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(next(self._ids), room_id, self._clock() + max(0, int(delay_ms)), callback)
        with self._lock:
            self._tasks.setdefault(room_id, []).append(task)
        self._log(f"[timer-set] room={room_id} task={task.id} delay={delay_ms}ms due_at={task.due_at}")
        if self._spawn is not None:
            self._spawn(self._worker, task)
        return task

    def cancel_room(self, room_id: str) -> int:
        with self._lock:
            tasks = self._tasks.pop(room_id, [])
        for task in tasks:
            task.cancelled = True
        if tasks:
            self._log(f"[timer-cancel] room={room_id} cancelled={len(tasks)}")
        return len(tasks)

    def pending(self, room_id: Optional[str] = None) -> List[ScheduledTask]:
        with self._lock:
            if room_id is not None:
                return list(self._tasks.get(room_id, []))
            return [t for tasks in self._tasks.values() for t in tasks]

    def run_due(self, now: Optional[int] = None) -> int:
        now = self._clock() if now is None else now
        due = sorted((t for t in self.pending() if t.due_at <= now), key=lambda t: (t.due_at, t.id))
        fired = 0
        for task in due:
            if self._fire(task):
                fired += 1
        return fired

    def _worker(self, task: ScheduledTask) -> None:
        # sleep can return early under eventlet/gevent; keep waiting until due
        delay = task.due_at - self._clock()
        while delay > 0 and not task.cancelled:
            self._sleep(delay / 1000.0)
            delay = task.due_at - self._clock()
        self._fire(task)

    def _fire(self, task: ScheduledTask) -> bool:
        with self._lock:
            if task.cancelled or task.fired:
                return False
            task.fired = True
            tasks = self._tasks.get(task.room_id, [])
            if task in tasks:
                tasks.remove(task)
            if not tasks:
                self._tasks.pop(task.room_id, None)
        self._log(f"[timer-fire] room={task.room_id} task={task.id}")
        try:
            task.callback()
        except Exception:
            if self._logger is not None:
                self._logger.exception(f"[timer-error] room={task.room_id} task={task.id}")
            else:
                raise
        return True

    def _log(self, message: str) -> None:
        if self._logger is None:
            return
        try:
            self._logger.info(message)
        except Exception:
            pass

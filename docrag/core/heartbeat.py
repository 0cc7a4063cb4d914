"""
Heartbeat scheduler.
Runs registered periodic tasks on one background thread; a failing task is logged and the loop keeps going.
"""

import threading
import time
from typing import Callable, Dict, List, Optional

from ..util.logging import logger as default_logger

TICK_SEC = 0.1


class Heartbeat:
    """Cooperative scheduler for periodic tasks.

    Tasks run sequentially on a single thread, so two runs of the same task
    never overlap. Intervals are measured with ``time.monotonic()`` from the
    end of the previous run.
    """

    def __init__(self, enabled: bool = True, logger=None, tick_sec: float = TICK_SEC):
        self.enabled = enabled
        self.logger = logger or default_logger
        self.tick_sec = tick_sec
        self.tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run}
        self.running = False
        self._shutdown_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def register_task(self, name: str, interval_sec: float, func: Callable) -> None:
        """
        Register a task to be executed periodically.

        Args:
            name: Unique task identifier
            interval_sec: How often to run this task in seconds
            func: Function to call
        """
        if not callable(func):
            raise ValueError(f"Task function must be callable: {func}")

        if interval_sec <= 0:
            raise ValueError(f"Interval must be > 0 seconds: {interval_sec}")

        with self._lock:
            self.tasks[name] = {
                "func": func,
                "interval": interval_sec,
                "last_run": None
            }

        self.logger.info(f"Registered heartbeat task '{name}' (every {interval_sec}s)")

    def unregister_task(self, name: str) -> None:
        """Remove a task from the registry."""
        with self._lock:
            removed = self.tasks.pop(name, None)
        if removed is not None:
            self.logger.info(f"Unregistered heartbeat task '{name}'")

    def list_tasks(self) -> List[str]:
        """Return list of registered task names."""
        with self._lock:
            return list(self.tasks.keys())

    def start(self, background: bool = True) -> None:
        """
        Start the heartbeat loop.

        Args:
            background: Run the loop on a daemon thread and return immediately.
                When False the loop runs on the calling thread until stop()
                or KeyboardInterrupt.
        """
        if not self.enabled:
            self.logger.info("Heartbeat disabled. Skipping start.")
            return

        if self.running:
            raise RuntimeError("Heartbeat already running")

        self.running = True
        self._shutdown_event.clear()
        self.logger.info(f"Starting heartbeat loop with tasks: {self.list_tasks()}")

        if background:
            self._thread = threading.Thread(target=self._loop, name="docrag-heartbeat", daemon=True)
            self._thread.start()
        else:
            try:
                self._loop()
            except KeyboardInterrupt:
                self.logger.info("Heartbeat interrupted by user")

    def _loop(self) -> None:
        try:
            while self.running and not self._shutdown_event.is_set():
                with self._lock:
                    due = [(name, info) for name, info in self.tasks.items() if self.should_run_task(name, info)]

                for name, task_info in due:
                    if self._shutdown_event.is_set():
                        break
                    try:
                        self.run_task(name, task_info)
                    except RuntimeError as e:
                        # Error isolation - log error but continue loop
                        self.logger.error(f"Heartbeat task '{name}' failed: {e}")

                self._shutdown_event.wait(self.tick_sec)
        finally:
            self.running = False
            self.logger.info("Heartbeat loop stopped")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the heartbeat loop and wait for the current task to finish."""
        if not self.running:
            self.logger.info("Heartbeat not running")
            return

        self.logger.info("Stopping heartbeat loop...")
        self.running = False
        self._shutdown_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def should_run_task(self, name: str, task_info: Dict) -> bool:
        """Check if a task should run this cycle."""
        if task_info["last_run"] is None:
            return True  # Run immediately if never run

        elapsed = time.monotonic() - task_info["last_run"]
        return elapsed >= task_info["interval"]

    def run_task(self, name: str, task_info: Dict) -> None:
        """Execute a task and record timing."""
        start_time = time.monotonic()

        try:
            task_info["func"]()
        except Exception as e:
            end_time = time.monotonic()
            task_info["last_run"] = end_time
            self.logger.log_heartbeat_task(name, start_time, end_time, status="failed", details={"error": str(e)})
            raise RuntimeError(f"Task '{name}' failed after {end_time - start_time:.2f}s: {e}") from e

        end_time = time.monotonic()
        task_info["last_run"] = end_time
        self.logger.debug(f"Heartbeat task '{name}' completed in {end_time - start_time:.2f}s")

    def reset_task(self, name: str) -> None:
        """Reset a task's last_run time to force immediate execution."""
        with self._lock:
            if name in self.tasks:
                self.tasks[name]["last_run"] = None

    def get_status(self) -> Dict:
        """Return current heartbeat status for monitoring."""
        if not self.enabled:
            return {"status": "disabled", "reason": "INDEXER_ENABLED=false"}

        with self._lock:
            tasks = {
                name: {
                    "interval_sec": info["interval"],
                    "last_run": info["last_run"],
                    "next_run": info["last_run"] + info["interval"] if info["last_run"] else None
                }
                for name, info in self.tasks.items()
            }
        return {
            "status": "running" if self.running else "stopped",
            "tasks": tasks
        }

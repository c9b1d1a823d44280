"""
Coordination loop.

Spawns the target once, then restarts it for every relevant change event.
Restarts run synchronously on the loop, so a burst of events is handled as
that many sequential restart cycles. The loop ends when the child exits on
its own (the exit callback closes the watcher) or the watch fails.
"""

import logging
from typing import Iterable, Optional

from .filters import ChangeFilter
from .process import Supervisor
from .watcher import ChangeEvent

logger = logging.getLogger(__name__)


class Coordinator:
    """Drives a Supervisor from a stream of change events."""

    def __init__(
        self,
        supervisor: Supervisor,
        watcher: Iterable[ChangeEvent],
        change_filter: ChangeFilter,
        command: str,
        args: list[str] = (),
    ):
        self.supervisor = supervisor
        self.watcher = watcher
        self.change_filter = change_filter
        self.command = command
        self.args = list(args)
        self.restarts = 0

    def _on_child_exit(self, exit_code: int):
        logger.info(f"Child exited with code {exit_code}, stopping")
        close = getattr(self.watcher, "close", None)
        if close:
            close()

    def handle(self, event: ChangeEvent) -> bool:
        """Restart the child if the event is relevant. Returns True on restart."""
        if not self.change_filter.is_relevant(event):
            logger.debug(f"Ignoring {event.kind} {event.path}")
            return False

        logger.info(f"Restarting due to {event.kind} {event.path}")
        self.supervisor.restart(self.command, self.args)
        self.restarts += 1
        return True

    def run(self) -> Optional[int]:
        """Run until the child exits on its own. Returns its exit code."""
        self.supervisor.set_exit_callback(self._on_child_exit)
        try:
            self.supervisor.spawn(self.command, self.args)

            start = getattr(self.watcher, "start", None)
            if start:
                start()
            if self.supervisor.exit_requested:
                return self.supervisor.exit_code

            for event in self.watcher:
                if self.supervisor.exit_requested:
                    break
                self.handle(event)

            return self.supervisor.exit_code
        finally:
            close = getattr(self.watcher, "close", None)
            if close:
                close()
            self.supervisor.shutdown()

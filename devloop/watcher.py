"""
Recursive filesystem watching.

Wraps a watchdog observer in a single-consumer, pull-based iterator of
ChangeEvent values. Events are queued by the observer thread and pulled by the
coordination loop; closing the watcher tears down the observer and ends the
iteration.
"""

import logging
import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .exceptions import WatchSetupFailure

logger = logging.getLogger(__name__)

CHANGE_TYPES = (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_DELETED)

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    """A change to a path below the watched root."""

    path: str
    kind: str


class QueueingHandler(FileSystemEventHandler):
    """Turns watchdog events into ChangeEvents on a queue."""

    def __init__(self, root: Path, events: queue.Queue):
        super().__init__()
        self.root = root
        self.events = events

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in CHANGE_TYPES:
            return

        # Moves report the new name
        path = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
        if isinstance(path, bytes):
            path = os.fsdecode(path)

        relative = os.path.relpath(path, self.root)
        self.events.put(ChangeEvent(path=relative, kind=event.event_type))


class ChangeWatcher:
    """Lazy, unbounded sequence of changes below a root directory."""

    def __init__(self, root):
        self.root = Path(root).resolve()
        self._events: queue.Queue = queue.Queue()
        self._observer = None
        self._closed = False

    def start(self) -> "ChangeWatcher":
        """Establish the recursive watch. Raises WatchSetupFailure."""
        if self._closed or self._observer is not None:
            return self

        if not self.root.is_dir():
            raise WatchSetupFailure(f"Cannot watch {self.root}: not a directory")

        observer = Observer()
        try:
            observer.schedule(QueueingHandler(self.root, self._events), str(self.root), recursive=True)
            observer.start()
        except OSError as e:
            raise WatchSetupFailure(f"Cannot watch {self.root}: {e}") from e

        self._observer = observer
        logger.info(f"Watching {self.root}")
        return self

    def close(self):
        """Stop watching. Pending and future events are discarded."""
        if self._closed:
            return
        self._closed = True

        if self._observer is not None:
            self._observer.stop()
            if threading.current_thread() is not self._observer:
                self._observer.join(timeout=5)
        self._events.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, timeout: float = None) -> ChangeEvent:
        """Pull the next event. Raises queue.Empty on timeout, StopIteration once closed."""
        if self._closed:
            raise StopIteration
        item = self._events.get(timeout=timeout)
        if item is _CLOSED or self._closed:
            raise StopIteration
        return item

    def __iter__(self):
        return self

    def __next__(self) -> ChangeEvent:
        return self.get()

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.close()


def watch(root) -> ChangeWatcher:
    """Start watching root recursively and return the event iterator."""
    return ChangeWatcher(root).start()

import os
import queue

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from devloop.exceptions import WatchSetupFailure
from devloop.watcher import ChangeEvent, ChangeWatcher, QueueingHandler, watch


def test_change_event_is_a_value():
    assert ChangeEvent("a.py", "modified") == ChangeEvent("a.py", "modified")
    assert ChangeEvent("a.py", "modified") != ChangeEvent("a.py", "created")
    assert len({ChangeEvent("a.py", "modified"), ChangeEvent("a.py", "modified")}) == 1

    with pytest.raises(AttributeError):
        ChangeEvent("a.py", "modified").path = "b.py"


@pytest.fixture
def handler(tmp_path):
    return QueueingHandler(tmp_path, queue.Queue())


def test_handler_reports_relative_paths(handler, tmp_path):
    handler.on_any_event(FileModifiedEvent(str(tmp_path / "pkg" / "app.py")))

    assert handler.events.get_nowait() == ChangeEvent(os.path.join("pkg", "app.py"), "modified")


def test_handler_reports_move_destination(handler, tmp_path):
    handler.on_any_event(FileMovedEvent(str(tmp_path / "old.tmp"), str(tmp_path / "new.py")))

    assert handler.events.get_nowait() == ChangeEvent("new.py", "moved")


def test_handler_skips_directories(handler, tmp_path):
    handler.on_any_event(DirModifiedEvent(str(tmp_path / "pkg")))
    handler.on_any_event(FileCreatedEvent(str(tmp_path / "pkg" / "x.py")))

    assert handler.events.get_nowait().kind == "created"
    assert handler.events.empty()


def test_watch_missing_directory_fails(tmp_path):
    with pytest.raises(WatchSetupFailure):
        watch(tmp_path / "missing")


def test_watch_file_fails(tmp_path):
    target = tmp_path / "app.py"
    target.write_text("")

    with pytest.raises(WatchSetupFailure):
        watch(target)


def next_matching(watcher, path, timeout=10):
    while True:
        event = watcher.get(timeout=timeout)
        if event.path == path:
            return event


def test_watch_reports_nested_changes(tmp_path):
    (tmp_path / "sub").mkdir()

    with ChangeWatcher(tmp_path) as watcher:
        (tmp_path / "sub" / "module.py").write_text("x = 1\n")

        event = next_matching(watcher, os.path.join("sub", "module.py"))

    assert event.kind in ("created", "modified")


def test_close_ends_iteration(tmp_path):
    watcher = watch(tmp_path)
    watcher.close()

    assert watcher.closed
    assert list(watcher) == []
    with pytest.raises(StopIteration):
        watcher.get(timeout=0.1)


def test_get_times_out_without_events(tmp_path):
    with ChangeWatcher(tmp_path) as watcher:
        with pytest.raises(queue.Empty):
            watcher.get(timeout=0.2)


def test_closed_watcher_cannot_restart(tmp_path):
    watcher = ChangeWatcher(tmp_path)
    watcher.close()

    assert watcher.start() is watcher
    assert list(watcher) == []

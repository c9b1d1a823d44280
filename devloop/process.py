"""
Process supervisor for the development loop.

Owns the single current child process. Forwards the child's stdout/stderr to
the parent's streams, observes its termination, and replaces it on restart.
A child that exits on its own is reported to the driver as an exit request;
a child killed by a restart or shutdown never is.
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Callable, Optional

import psutil

from .config import config
from .exceptions import ChildIOFailure, LaunchFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class SupervisorState(Enum):
    NO_CHILD = "no_child"
    CHILD_RUNNING = "child_running"
    RESTARTING = "restarting"


@dataclass
class ManagedProcess:
    """A child process tracked by the supervisor."""

    process: subprocess.Popen
    command: list[str]
    started_at: datetime = field(default_factory=datetime.now)
    forwarders: list[threading.Thread] = field(default_factory=list)
    suppressed: bool = False
    _exited: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        """Exit code once termination was observed; negative for a signal."""
        if not self._exited.is_set():
            return None
        return self.process.returncode

    def is_alive(self) -> bool:
        return not self._exited.is_set()

    def wait(self, timeout: float = None) -> Optional[int]:
        """Block until termination is observed. Returns the exit code."""
        self._exited.wait(timeout)
        return self.returncode


class Supervisor:
    """Keeps exactly one managed child process alive."""

    def __init__(
        self,
        stdout: BinaryIO = None,
        stderr: BinaryIO = None,
        kill_process_group: bool = None,
        drain_timeout: float = None,
        cwd: str = None,
    ):
        self._stdout = stdout
        self._stderr = stderr
        self._kill_group = (
            config.kill_process_group if kill_process_group is None else kill_process_group
        ) and os.name == "posix"
        self._drain_timeout = config.drain_timeout if drain_timeout is None else drain_timeout
        self._cwd = cwd

        self._lock = threading.Lock()
        self._current: Optional[ManagedProcess] = None
        self._state = SupervisorState.NO_CHILD

        self._exit_code: Optional[int] = None
        self._exit_event = threading.Event()
        self._on_exit: Callable[[int], None] = None

    def set_exit_callback(self, callback: Callable[[int], None]):
        """Set callback for a child's natural exit: callback(exit_code)."""
        self._on_exit = callback

    @property
    def current(self) -> Optional[ManagedProcess]:
        with self._lock:
            return self._current

    @property
    def state(self) -> SupervisorState:
        with self._lock:
            return self._state

    @property
    def exit_requested(self) -> bool:
        return self._exit_event.is_set()

    @property
    def exit_code(self) -> Optional[int]:
        return self._exit_code

    def wait_for_exit(self, timeout: float = None) -> Optional[int]:
        """Block until a child exits on its own. Returns its exit code."""
        self._exit_event.wait(timeout)
        return self._exit_code

    def spawn(self, command: str, args: list[str] = ()) -> ManagedProcess:
        """Start a child process and make it the current one."""
        cmd = [command, *args]

        with self._lock:
            if self._current is not None and self._current.is_alive():
                raise RuntimeError(f"PID {self._current.pid} is still running, use restart()")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self._cwd,
                start_new_session=self._kill_group,  # Own process group for killpg
            )
        except OSError as e:
            with self._lock:
                if self._state == SupervisorState.RESTARTING:
                    self._state = SupervisorState.NO_CHILD
            raise LaunchFailure(f"Failed to start {' '.join(cmd)}: {e}") from e

        managed = ManagedProcess(process=process, command=cmd)

        with self._lock:
            self._current = managed
            self._state = SupervisorState.CHILD_RUNNING

        stdout = self._stdout or sys.stdout.buffer
        stderr = self._stderr or sys.stderr.buffer
        for name, source, sink in (
            ("stdout", process.stdout, stdout),
            ("stderr", process.stderr, stderr),
        ):
            thread = threading.Thread(
                target=self._forward_output,
                args=(managed, name, source, sink),
                name=f"devloop-{name}-{process.pid}",
                daemon=True,
            )
            managed.forwarders.append(thread)
            thread.start()

        observer = threading.Thread(
            target=self._observe_termination,
            args=(managed,),
            name=f"devloop-observer-{process.pid}",
            daemon=True,
        )
        observer.start()

        logger.info(f"Started {' '.join(cmd)} with PID {process.pid}")
        return managed

    def restart(self, command: str, args: list[str] = ()) -> ManagedProcess:
        """Kill the current child and spawn a replacement.

        Returns once the new process has been created. The old process is
        disarmed before the kill signal so its termination never counts as
        a natural exit.
        """
        with self._lock:
            if self._exit_event.is_set():
                logger.info("Exit already requested, not restarting")
                return self._current
            old = self._current
            self._state = SupervisorState.RESTARTING
            if old:
                old.suppressed = True

        if old:
            self._kill(old)
            old.wait()
            logger.info(f"Killed PID {old.pid}")
            with self._lock:
                if self._current is old:
                    self._current = None

        return self.spawn(command, args)

    def shutdown(self):
        """Kill the current child, if any, without requesting an exit."""
        with self._lock:
            managed = self._current
            if managed:
                managed.suppressed = True

        if managed and managed.is_alive():
            logger.info(f"Stopping PID {managed.pid}")
            self._kill(managed)
            managed.wait()

        with self._lock:
            if self._current is managed:
                self._current = None
                self._state = SupervisorState.NO_CHILD

    def _kill(self, managed: ManagedProcess):
        """Send SIGKILL to the child and everything it started."""
        process = managed.process

        descendants = []
        if process.poll() is None:
            try:
                descendants = psutil.Process(process.pid).children(recursive=True)
            except psutil.NoSuchProcess:
                pass

        if self._kill_group:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        else:
            try:
                process.kill()
            except ProcessLookupError:
                pass

        # Descendants that left the process group
        for child in descendants:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                pass

    def _forward_output(self, managed: ManagedProcess, name: str, source, sink: BinaryIO):
        """Copy child output to the parent stream as it arrives."""
        try:
            for chunk in iter(lambda: source.read1(CHUNK_SIZE), b""):
                try:
                    sink.write(chunk)
                    sink.flush()
                except (OSError, ValueError) as e:
                    raise ChildIOFailure(f"Cannot forward {name} of PID {managed.pid}: {e}") from e
        except ChildIOFailure as e:
            logger.error(str(e))
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {name} of PID {managed.pid}: {e}")
        finally:
            source.close()

    def _observe_termination(self, managed: ManagedProcess):
        """Wait for the child to exit and report a natural exit."""
        returncode = managed.process.wait()
        managed._exited.set()

        for thread in managed.forwarders:
            thread.join(timeout=self._drain_timeout)

        with self._lock:
            if self._current is managed:
                self._current = None
                self._state = SupervisorState.NO_CHILD

            if managed.suppressed:
                return

            if returncode < 0:
                logger.warning(f"PID {managed.pid} was terminated by signal {-returncode}")
                return

            logger.info(f"PID {managed.pid} exited with code {returncode}")
            self._exit_code = returncode
            self._exit_event.set()

        if self._on_exit:
            self._on_exit(returncode)

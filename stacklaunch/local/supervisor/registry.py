import psutil
import threading
import subprocess
from dataclasses import dataclass
from typing import Iterator, List


@dataclass
class TrackedProcess:
    """A successfully spawned service, as held by the LiveRegistry."""
    name: str
    process: subprocess.Popen
    launched_at: float

    @property
    def pid(self) -> int:
        return self.process.pid

    def terminate(self) -> None:
        """
        Sends a termination request to the service's shell and every descendant.

        Children are signalled first because the shell does not forward SIGTERM
        to the program it started.

        :raises psutil.NoSuchProcess: If the process has already exited.
        """
        if self.process.poll() is not None:
            raise psutil.NoSuchProcess(self.process.pid, self.name)

        parent = psutil.Process(self.process.pid)
        for child in parent.children(recursive=True):
            try:
                child.terminate()
            except psutil.NoSuchProcess:
                continue
        parent.terminate()


class LiveRegistry:
    """
    Ordered collection of the processes the supervisor currently tracks.

    Only successful spawns are ever added. Appends come from the launcher,
    the shutdown coordinator drains it once. After the drain the registry is
    closed and refuses new entries.
    """

    def __init__(self) -> None:
        self._entries: List[TrackedProcess] = []
        self._lock = threading.Lock()
        self._closed = False

    def add(self, tracked: TrackedProcess) -> bool:
        """
        Appends a process.

        :return bool: False if the registry was already drained; the caller owns the process then.
        """
        with self._lock:
            if self._closed:
                return False
            self._entries.append(tracked)
            return True

    def snapshot(self) -> List[TrackedProcess]:
        """Returns a copy of the tracked processes in insertion order."""
        with self._lock:
            return list(self._entries)

    def drain(self) -> List[TrackedProcess]:
        """Removes and returns every tracked process in insertion order, then closes the registry."""
        with self._lock:
            entries, self._entries = self._entries, []
            self._closed = True
        return entries

    @property
    def closed(self) -> bool:
        return self._closed

    def names(self) -> List[str]:
        return [entry.name for entry in self.snapshot()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[TrackedProcess]:
        return iter(self.snapshot())

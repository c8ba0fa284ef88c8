"""Host queries used by the scanner, with a Linux /proc implementation."""

import logging
import os
from collections.abc import Iterator
from typing import Protocol

import psutil

from showaffinity.config import DEFAULT_PROC_ROOT, MAX_CPUS
from showaffinity.cpulist import MAX_SETSIZE_BITS
from showaffinity.errors import AffinityQueryError, ConfigError, ProcessListError
from showaffinity.models import CpuMask

log = logging.getLogger(__name__)

DEFAULT_SETSIZE_BITS = 1024  # sizeof(cpu_set_t) * 8 in glibc
STAT_NAME_WINDOW = 196


class Host(Protocol):
    """Operating system queries the scanner depends on."""

    def list_processes(self) -> Iterator[int]:
        """Yield the ids of live processes."""
        ...

    def list_threads(self, pid: int) -> Iterator[int]:
        """Yield the ids of a process's live threads; nothing if it is gone."""
        ...

    def owner_uid(self, pid: int) -> int | None:
        """Return the process owner's uid, or None if the process is gone."""
        ...

    def process_name(self, pid: int) -> str:
        """Return the executable short name, or an empty string."""
        ...

    def thread_running(self, tid: int) -> bool | None:
        """Return whether the thread is running, or None if it is gone."""
        ...

    def affinity(self, tid: int, setsize_bits: int) -> CpuMask:
        """Return the thread's affinity mask; raises AffinityQueryError on failure."""
        ...

    def cpu_count(self) -> int:
        """Return the number of logical CPUs."""
        ...

    def mask_width(self) -> int:
        """Return the affinity mask width in bits."""
        ...


def parse_task_id(name: str) -> int | None:
    """
    Parse a process or thread id from a /proc directory entry name.

    Names not starting with a decimal digit are not task entries. Like
    ``atoi``, only the leading digits count. Zero is never a real task id.
    """
    digits = 0
    while digits < len(name) and "0" <= name[digits] <= "9":
        digits += 1
    if not digits:
        return None
    task_id = int(name[:digits])
    return task_id or None


def parse_stat_name(text: str) -> str:
    """Extract the executable name between the first '(' and the next ')'."""
    start = text.find("(")
    if start == -1:
        return ""
    end = text.find(")", start + 1)
    if end == -1:
        return text[start + 1 :]
    return text[start + 1 : end]


def parse_stat_state(text: str) -> str:
    """Return the one-letter state field following the executable name."""
    end = text.rfind(")")
    if end == -1:
        return ""
    fields = text[end + 1 :].split()
    return fields[0] if fields else ""


def count_stat_cpus(text: str) -> int:
    """Count per-CPU counter lines after the aggregate line of /proc/stat."""
    count = 0
    for line in text.splitlines()[1:]:
        if not line.startswith("cpu"):
            break
        count += 1
    return count


class LinuxHost:
    """
    Host queries backed by the proc filesystem and psutil.

    Listing, ownership, name and state reads tolerate entries that vanish
    mid-scan and report them as not found. Affinity reads raise
    AffinityQueryError instead.
    """

    def __init__(self, proc_root: str = DEFAULT_PROC_ROOT, max_cpus: int = MAX_CPUS) -> None:
        """
        Initialize the LinuxHost.

        Args:
            proc_root: Mount point of the proc filesystem.
            max_cpus: Largest logical CPU count accepted from /proc/stat.
        """
        self._root = proc_root
        self._max_cpus = max_cpus
        self._cpu_count: int | None = None

    @property
    def proc_root(self) -> str:
        """Get the proc filesystem root."""
        return self._root

    def _ids(self, entries: Iterator[os.DirEntry]) -> Iterator[int]:
        """Yield task ids from directory entries, skipping everything else."""
        for entry in entries:
            task_id = parse_task_id(entry.name)
            if task_id is not None:
                yield task_id

    def list_processes(self) -> Iterator[int]:
        """Yield pids from the proc root; raises ProcessListError if it is unreadable."""
        try:
            entries = os.scandir(self._root)
        except OSError as e:
            raise ProcessListError(f"couldn't open {self._root}: {e}") from e
        with entries:
            yield from self._ids(entries)

    def list_threads(self, pid: int) -> Iterator[int]:
        """Yield tids from the process's task directory."""
        path = os.path.join(self._root, str(pid), "task")
        try:
            entries = os.scandir(path)
        except OSError as e:
            log.debug("couldn't open %s: %s", path, e)
            return
        with entries:
            yield from self._ids(entries)

    def owner_uid(self, pid: int) -> int | None:
        """Return the uid owning the process directory."""
        try:
            return os.stat(os.path.join(self._root, str(pid))).st_uid
        except OSError:
            return None

    def _read_stat(self, task_id: int, limit: int = -1) -> str | None:
        """Read a task's stat file, or None if it is gone."""
        path = os.path.join(self._root, str(task_id), "stat")
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                return f.read(limit)
        except OSError:
            return None

    def process_name(self, pid: int) -> str:
        """Return the name from the first STAT_NAME_WINDOW characters of the stat file."""
        text = self._read_stat(pid, STAT_NAME_WINDOW)
        if text is None:
            return ""
        return parse_stat_name(text)

    def thread_running(self, tid: int) -> bool | None:
        """Return whether the thread's stat state is R."""
        text = self._read_stat(tid)
        if text is None:
            return None
        return parse_stat_state(text) == "R"

    def affinity(self, tid: int, setsize_bits: int) -> CpuMask:
        """Read the thread's affinity with sched_getaffinity via psutil."""
        try:
            cpus = psutil.Process(tid).cpu_affinity()
        except (psutil.Error, OSError) as e:
            raise AffinityQueryError(tid, e) from e
        try:
            return CpuMask.from_cpus(cpus, setsize_bits)
        except ValueError as e:
            raise AffinityQueryError(tid, e) from e

    def cpu_count(self) -> int:
        """Return the logical CPU count, read once from /proc/stat."""
        if self._cpu_count is None:
            self._cpu_count = self._read_cpu_count()
        return self._cpu_count

    def _read_cpu_count(self) -> int:
        """Count CPUs in /proc/stat, falling back to psutil if it is unreadable."""
        path = os.path.join(self._root, "stat")
        try:
            with open(path, encoding="utf-8") as f:
                count = count_stat_cpus(f.read())
        except OSError as e:
            log.debug("couldn't read %s, falling back to psutil: %s", path, e)
            return psutil.cpu_count(logical=True) or 1

        if count > self._max_cpus:
            raise ConfigError(f"{count} logical CPUs exceeds the supported maximum of {self._max_cpus}")
        return count or psutil.cpu_count(logical=True) or 1

    def mask_width(self) -> int:
        """Return the glibc cpu_set_t width, widened to cover every CPU."""
        rounded = (self.cpu_count() + 7) // 8 * 8
        return min(max(DEFAULT_SETSIZE_BITS, rounded), MAX_SETSIZE_BITS)

"""Process and thread scanner for showaffinity."""

import logging
import os
from collections.abc import Iterator

from showaffinity import cpulist
from showaffinity.host import Host
from showaffinity.models import ProcessRecord, ReportLine, ThreadRecord

log = logging.getLogger(__name__)


class Scanner:
    """
    Walks the host's process table and reports the caller's threads.

    The scanner holds no state between scans; each call to ``records`` or
    ``scan`` starts a fresh pass over the live process table.

    Vanished processes and threads are skipped while listing, checking
    ownership, resolving names and reading state. A failed affinity read
    for a thread already selected for reporting aborts the scan with
    AffinityQueryError.
    """

    def __init__(
        self,
        host: Host,
        my_pid: int | None = None,
        my_uid: int | None = None,
        setsize_bits: int | None = None,
    ) -> None:
        """
        Initialize the Scanner.

        Args:
            host: Source of process, thread and affinity information.
            my_pid: Process id to exclude. Defaults to the current process.
            my_uid: User whose processes are reported. Defaults to the current user.
            setsize_bits: Affinity mask width. Defaults to ``host.mask_width()``.
        """
        self._host = host
        self._my_pid = os.getpid() if my_pid is None else my_pid
        self._my_uid = os.getuid() if my_uid is None else my_uid
        self._setsize_bits = setsize_bits

    @property
    def setsize_bits(self) -> int:
        """Get the affinity mask width used for queries."""
        if self._setsize_bits is None:
            self._setsize_bits = self._host.mask_width()
        return self._setsize_bits

    def _owned_processes(self) -> Iterator[int]:
        for pid in self._host.list_processes():
            if pid == 0 or pid == self._my_pid:
                continue
            uid = self._host.owner_uid(pid)
            if uid is None:
                log.debug("pid %d vanished before ownership check", pid)
                continue
            if uid == self._my_uid:
                yield pid

    def _process_threads(self, pid: int, show_all: bool) -> Iterator[ThreadRecord]:
        process: ProcessRecord | None = None
        header_pending = True

        for tid in self._host.list_threads(pid):
            if tid == 0:
                continue
            if process is None:
                name = self._host.process_name(pid)
                if not name:
                    log.debug("pid %d has no resolvable name, skipping", pid)
                    return
                process = ProcessRecord(pid=pid, uid=self._my_uid, name=name)

            running = self._host.thread_running(tid)
            if running is None:
                log.debug("tid %d of pid %d vanished before state check", tid, pid)
                continue
            if not running and not show_all:
                continue

            mask = self._host.affinity(tid, self.setsize_bits)

            yield ThreadRecord(tid=tid, process=process, running=running, mask=mask, first=header_pending)
            header_pending = False

    def records(self, show_all: bool = False) -> Iterator[ThreadRecord]:
        """Yield a ThreadRecord for every reported thread, process by process."""
        for pid in self._owned_processes():
            yield from self._process_threads(pid, show_all)

    def scan(self, show_all: bool = False) -> Iterator[ReportLine]:
        """
        Yield one ReportLine per reported thread.

        Args:
            show_all: Report every thread instead of only running ones.

        Raises:
            AffinityQueryError: A selected thread's affinity could not be read.
            BufferTooSmall: A CPU list did not fit the output budget.
        """
        for record in self.records(show_all):
            yield ReportLine(
                pid=record.process.pid,
                name=record.process.name,
                tid=record.tid,
                affinity=cpulist.render(record.mask),
                running=record.running,
                first=record.first,
            )


def scan(
    host: Host,
    show_all: bool = False,
    *,
    my_pid: int | None = None,
    my_uid: int | None = None,
    setsize_bits: int | None = None,
) -> Iterator[ReportLine]:
    """Scan the host's process table once; see Scanner.scan."""
    return Scanner(host, my_pid=my_pid, my_uid=my_uid, setsize_bits=setsize_bits).scan(show_all)

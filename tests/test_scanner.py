"""Tests for the process and thread scanner."""

import logging
import os

import pytest

from fakes import FakeHost, FakeProcess, FakeThread, sample_host
from showaffinity.errors import AffinityQueryError, BufferTooSmall
from showaffinity.models import CpuMask
from showaffinity.scanner import Scanner, scan

MY_PID = 1


def tids(lines):
    return [line.tid for line in lines]


class TestScanFiltering:
    """Tests for which threads are reported."""

    def test_running_only(self):
        """Test only running threads are reported by default."""
        host = sample_host()
        lines = list(scan(host, my_pid=MY_PID))

        assert tids(lines) == [100, 102]
        for line in lines:
            assert host.thread_running(line.tid) is True

    def test_show_all(self):
        """Test every thread of the user's processes is reported with show_all."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID))

        assert tids(lines) == [100, 101, 102, 200, 201]

    def test_running_is_subset_of_all(self):
        """Test the default report is a subset of the show_all report."""
        host = sample_host()
        running = set(tids(scan(host, my_pid=MY_PID)))
        everything = set(tids(scan(host, show_all=True, my_pid=MY_PID)))

        assert running <= everything

    def test_other_users_excluded(self):
        """Test processes owned by someone else are never reported."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID))

        assert 300 not in {line.pid for line in lines}

    def test_my_uid_parameter(self):
        """Test the reported user can be chosen explicitly."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID, my_uid=os.getuid() + 1))

        assert tids(lines) == [300]

    def test_self_excluded(self):
        """Test the scanning process never reports itself."""
        lines = list(scan(sample_host(), show_all=True, my_pid=100))

        assert 100 not in {line.pid for line in lines}
        assert tids(lines) == [200, 201]

    def test_self_excluded_by_default(self):
        """Test the current process id is excluded when none is given."""
        pid = os.getpid()
        host = FakeHost({pid: FakeProcess("me", {pid: FakeThread(True)})})

        assert list(Scanner(host).scan(show_all=True)) == []

    def test_pid_zero_ignored(self):
        """Test pid 0 is never reported."""
        host = FakeHost({0: FakeProcess("swapper", {0: FakeThread(True)})})

        assert list(scan(host, show_all=True, my_pid=MY_PID)) == []

    def test_empty_name_drops_whole_process(self):
        """Test a process without a name produces no lines at all."""
        host = FakeHost(
            {
                10: FakeProcess("", {10: FakeThread(True), 11: FakeThread(True)}),
                20: FakeProcess("named", {20: FakeThread(True)}),
            }
        )
        lines = list(scan(host, show_all=True, my_pid=MY_PID))

        assert tids(lines) == [20]
        assert host.affinity_calls == [20]

    def test_process_without_selected_threads_omitted(self):
        """Test a process whose threads are all filtered gets no header."""
        lines = list(scan(sample_host(), my_pid=MY_PID))

        assert 200 not in {line.pid for line in lines}


class TestScanHeaders:
    """Tests for header placement."""

    def test_first_thread_carries_header(self):
        """Test only the first reported thread of a process is marked first."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID))

        assert [line.first for line in lines] == [True, False, False, True, False]

    def test_header_moves_to_first_included_thread(self):
        """Test a skipped first thread does not swallow the header."""
        host = FakeHost({50: FakeProcess("svc", {50: FakeThread(False), 51: FakeThread(True)})})
        lines = list(scan(host, my_pid=MY_PID))

        assert tids(lines) == [51]
        assert lines[0].first
        assert lines[0].pid == 50
        assert lines[0].name == "svc"

    def test_affinity_rendered(self):
        """Test each line carries the rendered CPU list."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID))

        assert [line.affinity for line in lines] == ["0-7", "2,3", "4", "0", "1"]

    def test_running_flag(self):
        """Test lines report the thread's running state."""
        lines = list(scan(sample_host(), show_all=True, my_pid=MY_PID))

        assert [line.running for line in lines] == [True, False, True, False, False]


class TestVanishingEntries:
    """Tests for processes and threads that disappear mid-scan."""

    def test_owner_vanished(self):
        """Test a process gone before its ownership check is skipped."""
        host = FakeHost(
            {
                10: FakeProcess("gone", {10: FakeThread(True)}, uid=None),
                20: FakeProcess("here", {20: FakeThread(True)}),
            }
        )

        assert tids(scan(host, my_pid=MY_PID)) == [20]

    def test_thread_state_vanished(self):
        """Test a thread gone before its state read is skipped, even with show_all."""
        host = FakeHost({10: FakeProcess("proc", {10: FakeThread(None), 11: FakeThread(False)})})
        lines = list(scan(host, show_all=True, my_pid=MY_PID))

        assert tids(lines) == [11]
        assert lines[0].first
        assert host.affinity_calls == [11]

    def test_threads_vanished(self):
        """Test a process whose task list is empty is skipped."""
        host = FakeHost({10: FakeProcess("proc", {}), 20: FakeProcess("next", {20: FakeThread(True)})})

        assert tids(scan(host, my_pid=MY_PID)) == [20]


class TestScanFailures:
    """Tests for fatal scan failures."""

    def test_affinity_failure_aborts(self):
        """Test a failed affinity read stops the scan after the lines already produced."""
        host = sample_host(failing_tids={102})
        lines = []

        with pytest.raises(AffinityQueryError) as excinfo:
            for line in scan(host, show_all=True, my_pid=MY_PID):
                lines.append(line)

        assert excinfo.value.tid == 102
        assert tids(lines) == [100, 101]
        assert host.affinity_calls == [100, 101, 102]

    def test_affinity_failure_is_not_logged_by_scanner(self, caplog):
        """Test the scanner leaves reporting the fatal failure to its caller."""
        with caplog.at_level(logging.DEBUG, logger="showaffinity.scanner"):
            with pytest.raises(AffinityQueryError):
                list(scan(sample_host(failing_tids={100}), my_pid=MY_PID))

        assert not [record for record in caplog.records if record.levelno >= logging.ERROR]

    def test_affinity_failure_for_skipped_thread_is_harmless(self):
        """Test only selected threads have their affinity read."""
        host = sample_host(failing_tids={101})

        assert tids(scan(host, my_pid=MY_PID)) == [100, 102]

    def test_buffer_too_small_propagates(self, monkeypatch):
        """Test a codec overflow is fatal for the scan."""
        from showaffinity import cpulist

        monkeypatch.setattr(cpulist, "buffer_size", lambda setsize_bits: 1)

        with pytest.raises(BufferTooSmall):
            list(scan(sample_host(), my_pid=MY_PID))


class TestScanner:
    """Tests for Scanner configuration."""

    def test_scan_is_lazy(self):
        """Test nothing is queried until the scan is iterated."""
        host = sample_host()
        lines = Scanner(host, my_pid=MY_PID).scan(show_all=True)

        assert host.affinity_calls == []
        next(lines)
        assert host.affinity_calls == [100]

    def test_scan_restarts(self):
        """Test every call starts a fresh scan."""
        scanner = Scanner(sample_host(), my_pid=MY_PID)

        assert tids(scanner.scan()) == tids(scanner.scan())

    def test_default_width_from_host(self):
        """Test the mask width defaults to the host's."""
        scanner = Scanner(sample_host(width=64), my_pid=MY_PID)

        assert scanner.setsize_bits == 64
        record = next(scanner.records())
        assert record.mask.setsize_bits == 64

    def test_explicit_width(self):
        """Test an explicit mask width overrides the host's."""
        scanner = Scanner(sample_host(), my_pid=MY_PID, setsize_bits=1024)

        assert next(scanner.records()).mask == CpuMask.from_cpus(range(8), 1024)

    def test_records_share_process(self):
        """Test threads of one process share its ProcessRecord."""
        records = list(Scanner(sample_host(), my_pid=MY_PID).records(show_all=True))

        assert records[0].process is records[1].process
        assert records[0].process.name == "worker"
        assert records[0].process.uid == os.getuid()

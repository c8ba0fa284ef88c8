"""showaffinity - interactive Textual viewer."""

import socket

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from showaffinity.config import ReportConfig
from showaffinity.errors import ShowAffinityError
from showaffinity.host import Host
from showaffinity.models import ReportLine
from showaffinity.scanner import Scanner


class SummaryHeader(Static):
    """Header widget showing host and scan totals."""

    DEFAULT_CSS = """
    SummaryHeader {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SummaryHeader."""
        super().__init__(*args, **kwargs)
        self._hostname: str = socket.gethostname()
        self._cpu_count: int = 0
        self._threads: int = 0
        self._processes: int = 0
        self._show_all: bool = False

    def update_summary(self, lines: list[ReportLine], cpu_count: int, show_all: bool) -> None:
        """Update the totals from a completed scan."""
        self._cpu_count = cpu_count
        self._threads = len(lines)
        self._processes = sum(1 for line in lines if line.first)
        self._show_all = show_all
        self.update(self._get_summary())

    def _get_summary(self) -> str:
        scope = "all threads" if self._show_all else "running threads"
        return (
            f"{self._hostname}: {self._cpu_count} logical CPUs\n"
            f"{self._processes} processes, {self._threads} {scope}"
        )


class AffinityTable(Container):
    """Container for the thread affinity table."""

    DEFAULT_CSS = """
    AffinityTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the affinity table."""
        yield DataTable(id="affinity-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self._ensure_columns(self.query_one("#affinity-table", DataTable))

    def _ensure_columns(self, table: DataTable) -> None:
        if table.columns:
            return
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=16)
        table.add_column("TID", key="tid", width=8)
        table.add_column("S", key="state", width=3)
        table.add_column("Affinity", key="affinity")

    def update_lines(self, lines: list[ReportLine]) -> None:
        """Replace the table contents with a new scan."""
        table = self.query_one("#affinity-table", DataTable)
        self._ensure_columns(table)
        table.clear()
        for line in lines:
            table.add_row(
                str(line.pid) if line.first else "",
                line.name if line.first else "",
                str(line.tid),
                "R" if line.running else "",
                line.affinity,
                key=str(line.tid),
            )


class AffinityApp(App):
    """Interactive thread affinity viewer."""

    TITLE = "showaffinity"
    SUB_TITLE = "Thread CPU affinity"

    CSS = """
    Screen {
        layout: vertical;
    }

    #summary {
        dock: top;
        height: auto;
        min-height: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("a", "toggle_all", "All/Running"),
        ("r", "rescan", "Rescan"),
    ]

    def __init__(self, host: Host, config: ReportConfig | None = None) -> None:
        """
        Initialize the AffinityApp.

        Args:
            host: Source of process, thread and affinity information.
            config: Report settings; only ``show_all`` and ``setsize_bits`` are used.
        """
        super().__init__()
        config = config or ReportConfig()
        self._host = host
        self._scanner = Scanner(host, setsize_bits=config.setsize_bits)
        self._show_all = config.show_all
        self._report_lines: list[ReportLine] = []
        self.failed = False

    @property
    def show_all(self) -> bool:
        """Whether every thread is shown, not only running ones."""
        return self._show_all

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield SummaryHeader(id="summary")
        yield AffinityTable()
        yield Footer()

    def on_mount(self) -> None:
        """Run the first scan once the widgets exist."""
        self.action_rescan()

    def action_rescan(self) -> None:
        """Scan the process table and refresh the view."""
        try:
            self._report_lines = list(self._scanner.scan(self._show_all))
            cpu_count = self._host.cpu_count()
        except ShowAffinityError as e:
            self.failed = True
            self._report_lines = []
            self.notify(str(e), title="Scan failed", severity="error")
            cpu_count = 0
        else:
            self.failed = False

        self.query_one(AffinityTable).update_lines(self._report_lines)
        self.query_one("#summary", SummaryHeader).update_summary(self._report_lines, cpu_count, self._show_all)

    def action_toggle_all(self) -> None:
        """Switch between all threads and running threads, then rescan."""
        self._show_all = not self._show_all
        self.action_rescan()
        self.notify("Showing all threads" if self._show_all else "Showing running threads")

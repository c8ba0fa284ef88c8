"""Text rendering of scan results."""

from collections.abc import Iterable
from typing import TextIO

from showaffinity.models import ReportLine

HEADER = "pid     Exe_Name             tid     Affinity"
HEADER_WIDTH = 29  # columns taken by the pid and name fields


def format_line(line: ReportLine) -> str:
    """Format one report line; continuation lines leave pid and name blank."""
    if line.first:
        lead = f"{line.pid:<6}  {line.name:<15}      "
    else:
        lead = " " * HEADER_WIDTH
    return f"{lead}{line.tid:<6}  {line.affinity}".rstrip()


def format_report(lines: Iterable[ReportLine]) -> Iterable[str]:
    """Yield the header followed by one formatted line per thread."""
    yield HEADER
    for line in lines:
        yield format_line(line)


def write_report(lines: Iterable[ReportLine], stream: TextIO) -> int:
    """
    Write a report to a text stream as lines are produced.

    Lines already produced stay written if the underlying scan fails.

    Returns:
        Number of thread lines written.
    """
    count = -1
    for count, text in enumerate(format_report(lines)):
        stream.write(text + "\n")
        stream.flush()
    return count

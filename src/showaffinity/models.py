"""Data models for showaffinity."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from showaffinity.errors import MaskWidthError

MAX_SETSIZE_BITS = 2048 * 8


def check_width(setsize_bits: int) -> None:
    """Reject mask widths that are not positive multiples of 8 or exceed the maximum."""
    if setsize_bits <= 0 or setsize_bits % 8:
        raise MaskWidthError(f"mask width must be a positive multiple of 8, got {setsize_bits}")
    if setsize_bits > MAX_SETSIZE_BITS:
        raise MaskWidthError(f"mask width {setsize_bits} exceeds maximum of {MAX_SETSIZE_BITS} bits")


@dataclass(slots=True, frozen=True)
class CpuMask:
    """Immutable affinity mask of a fixed bit width."""

    bits: int  # bit i set <=> logical CPU i allowed
    setsize_bits: int

    def __post_init__(self) -> None:
        check_width(self.setsize_bits)
        if self.bits < 0:
            raise ValueError("mask bits must be non-negative")

    @classmethod
    def from_cpus(cls, cpus: Iterable[int], setsize_bits: int) -> "CpuMask":
        """Build a mask from CPU indices."""
        bits = 0
        for cpu in cpus:
            if not 0 <= cpu < setsize_bits:
                raise ValueError(f"cpu {cpu} outside mask width {setsize_bits}")
            bits |= 1 << cpu
        return cls(bits=bits, setsize_bits=setsize_bits)

    def is_set(self, cpu: int) -> bool:
        """Check whether the given CPU is allowed."""
        return 0 <= cpu < self.setsize_bits and bool(self.bits >> cpu & 1)

    def cpus(self) -> Iterator[int]:
        """Yield allowed CPU indices in ascending order."""
        for cpu in range(self.setsize_bits):
            if self.bits >> cpu & 1:
                yield cpu

    def count(self) -> int:
        """Number of allowed CPUs."""
        return sum(1 for _ in self.cpus())


@dataclass(slots=True, frozen=True)
class Range:
    """Contiguous run of set bits, inclusive on both ends."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start + 1


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """One process owned by the caller."""

    pid: int
    uid: int
    name: str


@dataclass(slots=True, frozen=True)
class ThreadRecord:
    """One observed thread selected for reporting."""

    tid: int
    process: ProcessRecord
    running: bool
    mask: CpuMask
    first: bool  # carries the process header


@dataclass(slots=True, frozen=True)
class ReportLine:
    """A thread's rendered report entry."""

    pid: int
    name: str
    tid: int
    affinity: str
    running: bool
    first: bool

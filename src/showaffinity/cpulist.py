"""CPU list rendering for affinity masks.

Converts a fixed-width affinity mask into the compact list notation used by
``taskset -c`` and ``/proc/<pid>/status`` (``0,2-5,8``), with one exception:
a run of exactly two CPUs is written as two singles (``3,4``), not ``3-4``.
"""

from collections.abc import Iterator

from showaffinity.errors import BufferTooSmall, MaskWidthError
from showaffinity.models import MAX_SETSIZE_BITS, CpuMask, Range, check_width

CHARS_PER_CPU = 64


def buffer_size(setsize_bits: int) -> int:
    """Output budget for a mask of the given width."""
    return CHARS_PER_CPU * setsize_bits


def _unpack(mask: CpuMask | int, setsize_bits: int | None) -> tuple[int, int]:
    if isinstance(mask, CpuMask):
        width = mask.setsize_bits if setsize_bits is None else setsize_bits
        bits = mask.bits
    else:
        if setsize_bits is None:
            raise MaskWidthError("setsize_bits is required for an integer mask")
        width = setsize_bits
        bits = mask
    check_width(width)
    return bits & ((1 << width) - 1), width


def runs(mask: CpuMask | int, setsize_bits: int | None = None) -> Iterator[Range]:
    """Yield maximal runs of set bits in ascending order."""
    bits, width = _unpack(mask, setsize_bits)
    i = 0
    while i < width:
        if not bits >> i & 1:
            i += 1
            continue
        j = i
        while j + 1 < width and bits >> (j + 1) & 1:
            j += 1
        yield Range(i, j)
        i = j + 1


def _token(run: Range) -> str:
    if run.start == run.end:
        return str(run.start)
    if len(run) == 2:
        return f"{run.start},{run.end}"
    return f"{run.start}-{run.end}"


def render(mask: CpuMask | int, setsize_bits: int | None = None, max_len: int | None = None) -> str:
    """
    Render an affinity mask as a CPU list.

    Args:
        mask: The mask to render. A plain integer needs ``setsize_bits``.
        setsize_bits: Width of the mask in bits; overrides the mask's own width.
        max_len: Maximum length of the result. Defaults to ``buffer_size``.

    Raises:
        MaskWidthError: The width is not a multiple of 8 or is too large.
        BufferTooSmall: The result would not fit in ``max_len`` characters.
    """
    _, width = _unpack(mask, setsize_bits)
    limit = buffer_size(width) if max_len is None else max_len

    tokens: list[str] = []
    used = 0
    for run in runs(mask, width):
        token = _token(run)
        used += len(token) + (1 if tokens else 0)
        if used > limit:
            raise BufferTooSmall(used, limit)
        tokens.append(token)
    return ",".join(tokens)

"""Exceptions raised by showaffinity."""


class ShowAffinityError(Exception):
    """Base class for showaffinity errors."""


class ConfigError(ShowAffinityError):
    """Invalid configuration or host environment."""


class ProcessListError(ShowAffinityError):
    """The process table could not be enumerated at all."""


class AffinityQueryError(ShowAffinityError):
    """Reading a selected thread's affinity failed; the scan is aborted."""

    def __init__(self, tid: int, cause: BaseException | None = None) -> None:
        self.tid = tid
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"failed to get tid {tid}'s affinity{detail}")


class BufferTooSmall(ShowAffinityError):
    """Rendered CPU list does not fit the output budget."""

    def __init__(self, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(f"cpu list needs {needed} characters, only {available} available")


class MaskWidthError(ShowAffinityError, ValueError):
    """Mask width is not a multiple of 8 or exceeds the supported maximum."""

"""Runtime configuration for showaffinity."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from showaffinity.errors import ConfigError, MaskWidthError
from showaffinity.models import check_width

DEFAULT_PROC_ROOT = "/proc"
MAX_CPUS = 2048

ENV_PROC_ROOT = "SHOWAFFINITY_PROC_ROOT"
ENV_SETSIZE_BITS = "SHOWAFFINITY_SETSIZE_BITS"


@dataclass(slots=True, frozen=True)
class ReportConfig:
    """Settings for one report run."""

    proc_root: str = DEFAULT_PROC_ROOT
    show_all: bool = False
    setsize_bits: int | None = None  # None: use the host's mask width
    max_cpus: int = MAX_CPUS

    def __post_init__(self) -> None:
        if self.setsize_bits is not None:
            try:
                check_width(self.setsize_bits)
            except MaskWidthError as e:
                raise ConfigError(str(e)) from e
        if self.max_cpus <= 0:
            raise ConfigError(f"max_cpus must be positive, got {self.max_cpus}")

    @classmethod
    def load(
        cls,
        show_all: bool = False,
        proc_root: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ReportConfig":
        """
        Build a config from command-line values and environment overrides.

        Explicit arguments win over the environment.

        Args:
            show_all: Report every thread, not only running ones.
            proc_root: Root of the proc filesystem.
            environ: Environment mapping. Defaults to ``os.environ``.
        """
        env = os.environ if environ is None else environ

        root = proc_root or env.get(ENV_PROC_ROOT) or DEFAULT_PROC_ROOT

        setsize_bits = None
        raw = env.get(ENV_SETSIZE_BITS)
        if raw:
            try:
                setsize_bits = int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_SETSIZE_BITS} must be an integer, got {raw!r}") from None

        return cls(proc_root=root, show_all=show_all, setsize_bits=setsize_bits)

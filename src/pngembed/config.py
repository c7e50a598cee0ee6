from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class TaskRunnerConfig:
    """
    How worker processes are launched.

    `timeout_s=None` waits for the worker indefinitely.
    `temp_dir=None` uses the platform temporary directory.
    """

    python_executable: str = sys.executable
    timeout_s: float | None = 600.0
    temp_dir: Path | None = None

    def validate(self) -> None:
        if not self.python_executable:
            raise ValueError("python_executable must not be empty")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0 or None")
        if self.temp_dir is not None and not Path(self.temp_dir).is_dir():
            raise ValueError(f"temp_dir does not exist: {self.temp_dir}")


@dataclass(frozen=True, slots=True)
class DecoderConfig:
    """
    PNG decoding parameters.

    Chunk CRCs are read but not checked unless `strict_crc` is set.
    """

    strict_crc: bool = False
    runner: TaskRunnerConfig = field(default_factory=TaskRunnerConfig)

    def validate(self) -> None:
        self.runner.validate()


__all__ = ["DecoderConfig", "TaskRunnerConfig"]

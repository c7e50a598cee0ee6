"""Run decode and compression steps in a separate Python process.

Decoding a large PNG needs the whole inflated image in memory. Running it
in a short-lived worker keeps that memory out of the calling process: the
worker writes the bulky result to a file and prints only small metadata.

Protocol: the worker is started as
``python -m pngembed.tasks.<task> --<name> <value> ...`` with every value
encoded by :func:`pngembed.tasks.wire.encode_value`. It prints a single
encoded envelope on stdout, either ``{"ok": true, "value": ...}`` or
``{"ok": false, "error": {"type": ..., "message": ...}}`` for image format
errors, which are re-raised in the caller with their original class.
Anything else that goes wrong in the worker shows up as a non-zero exit
status and becomes :class:`~pngembed.errors.ExternalTaskError`.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from ..config import TaskRunnerConfig
from ..errors import ExternalTaskError, MalformedImageError, UnsupportedFormatError
from .wire import decode_value, encode_value

logger = logging.getLogger(__name__)

TASKS: Dict[str, str] = {
    "decode_png": "pngembed.tasks.decode_png",
    "transform_stream": "pngembed.tasks.transform_stream",
}

# Errors a worker reports through the result envelope instead of crashing.
REMOTE_ERRORS = {cls.__name__: cls for cls in (MalformedImageError, UnsupportedFormatError)}

_STDERR_LIMIT = 4000
_SOURCE_ROOT = Path(__file__).resolve().parents[2]


def _tail(stream: bytes | str | None) -> str:
    if not stream:
        return ""
    if isinstance(stream, bytes):
        stream = stream.decode("utf-8", errors="replace")
    return stream[-_STDERR_LIMIT:]


def _worker_env() -> Dict[str, str]:
    env = dict(os.environ)
    paths = [str(_SOURCE_ROOT)]
    if env.get("PYTHONPATH"):
        paths.append(env["PYTHONPATH"])
    env["PYTHONPATH"] = os.pathsep.join(paths)
    return env


def build_command(task_name: str, kwargs: Dict[str, Any], config: TaskRunnerConfig) -> List[str]:
    try:
        module = TASKS[task_name]
    except KeyError:
        raise ValueError(f"Unknown task: {task_name!r}") from None
    command = [config.python_executable, "-m", module]
    for key, value in kwargs.items():
        command.extend([f"--{key}", encode_value(value)])
    return command


def run_task(task_name: str, *, config: TaskRunnerConfig | None = None, **kwargs: Any) -> Any:
    """Run *task_name* in a worker process and return its decoded result.

    Blocks until the worker exits or ``config.timeout_s`` expires.
    """

    config = config or TaskRunnerConfig()
    config.validate()
    command = build_command(task_name, kwargs, config)
    logger.debug("Running task %s (%s) with arguments %s", task_name, command[2], sorted(kwargs))

    try:
        proc = subprocess.run(
            command,
            check=False,
            capture_output=True,
            timeout=config.timeout_s,
            env=_worker_env(),
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalTaskError(
            task_name,
            f"worker timed out after {config.timeout_s}s",
            stderr=_tail(exc.stderr),
        ) from exc
    except OSError as exc:
        raise ExternalTaskError(task_name, f"could not start worker: {exc}") from exc

    stderr = _tail(proc.stderr)
    if proc.returncode != 0:
        raise ExternalTaskError(
            task_name,
            f"worker exited with status {proc.returncode}",
            returncode=proc.returncode,
            stderr=stderr,
        )

    try:
        envelope = decode_value(proc.stdout)
        ok = bool(envelope["ok"])
    except (ValueError, TypeError, KeyError) as exc:
        raise ExternalTaskError(
            task_name, f"could not decode worker output: {exc}", returncode=0, stderr=stderr
        ) from exc

    if ok:
        return envelope.get("value")

    error = envelope.get("error") or {}
    error_cls = REMOTE_ERRORS.get(str(error.get("type")))
    if error_cls is None:
        raise ExternalTaskError(task_name, f"unexpected worker error {error!r}", returncode=0, stderr=stderr)
    raise error_cls(str(error.get("message", "")))


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------

def args_to_kwargs(argv: Sequence[str]) -> Dict[str, Any]:
    if len(argv) % 2:
        raise SystemExit(f"Expected --name value pairs, got {len(argv)} arguments")
    kwargs: Dict[str, Any] = {}
    for name, value in zip(argv[::2], argv[1::2]):
        if not name.startswith("--"):
            raise SystemExit(f"Expected an option name, got {name!r}")
        kwargs[name[2:]] = decode_value(value)
    return kwargs


def run_worker(main: Callable[..., Any], argv: Sequence[str] | None = None) -> int:
    """Entry point shared by the worker modules; returns the exit status."""

    logging.basicConfig(stream=sys.stderr, level=logging.WARNING)
    kwargs = args_to_kwargs(sys.argv[1:] if argv is None else argv)
    try:
        envelope: Dict[str, Any] = {"ok": True, "value": main(**kwargs)}
    except tuple(REMOTE_ERRORS.values()) as exc:
        envelope = {"ok": False, "error": {"type": type(exc).__name__, "message": str(exc)}}
    sys.stdout.write(encode_value(envelope))
    sys.stdout.flush()
    return 0


__all__ = ["REMOTE_ERRORS", "TASKS", "args_to_kwargs", "build_command", "run_task", "run_worker"]

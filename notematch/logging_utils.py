"""Loguru configuration: stdlib bridge, optional console sink and run context."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Union

from loguru import logger

from notematch import BUILD_VERSION

PathLikeArg = Union[str, PathLike]

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "run={extra[run_id]} | env={extra[environment]} | "
    "ver={extra[service_version]} | {message}"
)

_ctx_run_id: ContextVar[str] = ContextVar("log_run_id", default="-")
_ctx_environment: ContextVar[str] = ContextVar("log_environment", default="local")

_CONTEXT_VARS: Dict[str, ContextVar[str]] = {
    "run_id": _ctx_run_id,
    "environment": _ctx_environment,
}


def _inject_context(record: Dict[str, Any]) -> Dict[str, Any]:
    extra = record["extra"]
    for key, ctx in _CONTEXT_VARS.items():
        extra.setdefault(key, ctx.get())
    extra.setdefault("service_version", BUILD_VERSION)
    return record


def _std_logging_sink(message) -> None:
    record = message.record
    exc = record["exception"]
    exc_info = (exc.type, exc.value, exc.traceback) if exc else None

    log_record = logging.LogRecord(
        name=record["name"],
        level=record["level"].no,
        pathname=record["file"].path,
        lineno=record["line"],
        msg=record["message"],
        args=(),
        exc_info=exc_info,
        func=record["function"],
    )
    for k, v in record["extra"].items():
        setattr(log_record, k, v)

    logging.getLogger(record["name"]).handle(log_record)


def setup_logging(level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> None:
    """
    (Re)configure loguru for notematch.

    Records always flow into stdlib ``logging`` under their module name, so
    host applications keep control of handlers. Pass ``stream`` (for example
    ``sys.stderr``) to also get formatted lines there. Level comes from
    ``level``, then ``LOG_LEVEL``, then INFO; ``ENV`` fills the environment field.
    """
    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    environment = os.getenv("ENV", "local")

    logger.remove()
    logger.configure(
        extra={"service_version": BUILD_VERSION, "environment": environment, "run_id": "-"},
        patcher=_inject_context,
    )
    _ctx_environment.set(environment)

    if stream is not None:
        logger.add(stream, level=log_level, format=_LOG_FORMAT, backtrace=False, diagnose=False)
    logger.add(_std_logging_sink, level=log_level, backtrace=False, diagnose=False)

    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))
    package_logger = logging.getLogger("notematch")
    if not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())


def setup_test_logging(
    path: Optional[PathLikeArg] = None,
    *,
    level: Optional[str] = None,
    filename: str = "pytest.log",
    parallel_safe: bool = False,
) -> None:
    """
    Logging for pytest runs.

    ``path`` is a ``.log`` file or a directory; a directory gets ``filename``
    (``pytest-<pid>.log`` when ``parallel_safe``). Level falls back to
    ``PYTEST_LOGLEVEL``, then INFO.
    """
    effective_level = (level or os.getenv("PYTEST_LOGLEVEL") or "INFO").upper()
    setup_logging(effective_level)
    if path is None:
        return

    target = Path(path)
    if target.suffix != ".log":
        target = target / (f"pytest-{os.getpid()}.log" if parallel_safe else filename)
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(target),
        level=effective_level,
        format=_LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )


@contextmanager
def logging_context(**values: str):
    """Bind structured fields (run_id, environment) for the duration of the block."""
    tokens = []
    for key, value in values.items():
        ctx = _CONTEXT_VARS.get(key)
        if ctx is not None:
            tokens.append((ctx, ctx.set(value or "-")))
    try:
        with logger.contextualize(**values):
            yield
    finally:
        for ctx, token in reversed(tokens):
            ctx.reset(token)


__all__ = ["setup_logging", "setup_test_logging", "logging_context"]

from __future__ import annotations

"""
Logging helpers for the operator / geometry layer.

Responsibilities
----------------
- Provide lightweight wrappers around the project's JsonlLogger.
- Make verbose console logging work additively with structured loggers.
- Provide tensor summaries that never crash on odd inputs.

Environment variables
---------------------
FASTSOLVER_LOG_LEVEL
    Log level hint for log_operator_event. One of
    {"debug", "info", "warning", "error"} (case-insensitive).
    Defaults to "debug": operator events are diagnostics.

FASTSOLVER_DEBUG_VERBOSE
    If truthy ("1", "true", "yes", "on"), enables verbose console logging.
    FASTSOLVER_LOG_LEVEL=debug alone does not turn on the console.
"""

import os
from typing import Any, Optional

import torch
from torch import Tensor

__all__ = [
    "want_verbose_debug",
    "get_log_level",
    "ConsoleLogger",
    "CombinedLogger",
    "get_logger",
    "log_operator_event",
    "debug_tensor_stats",
]

# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n"}
_VERBOSE_ENV = "FASTSOLVER_DEBUG_VERBOSE"
_LEVEL_ENV = "FASTSOLVER_LOG_LEVEL"
_LEVELS = ("debug", "info", "warning", "error")


def _normalize_bool_env(name: str, default: bool = False) -> bool:
    """
    Interpret an environment variable as a boolean.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default

    val = raw.strip().lower()
    if val in _TRUE_VALUES:
        return True
    if val in _FALSE_VALUES:
        return False
    return default


def want_verbose_debug(default: bool = False) -> bool:
    """
    Single source of truth for 'turn on noisy console debug logs'.
    """
    return _normalize_bool_env(_VERBOSE_ENV, default=default)


def get_log_level() -> str:
    """
    Return a normalized log level for operator events.
    """
    lvl = os.environ.get(_LEVEL_ENV, "debug").strip().lower()
    if lvl not in _LEVELS:
        return "debug"
    return lvl


# ---------------------------------------------------------------------------
# Loggers: Console & Combined
# ---------------------------------------------------------------------------


def _format_fields(fields: Any) -> str:
    if not fields:
        return ""
    return " " + " ".join(f"{k}={v}" for k, v in sorted(fields.items()))


class ConsoleLogger:
    """
    Simple stdout logger for operator debug traces.
    Safe to use anywhere; no external logging config needed.
    """

    def info(self, msg: str, **fields: Any) -> None:
        print(f"[FASTSOLVER] {msg}{_format_fields(fields)}", flush=True)

    def warning(self, msg: str, **fields: Any) -> None:
        print(f"[FASTSOLVER-WARN] {msg}{_format_fields(fields)}", flush=True)

    def error(self, msg: str, **fields: Any) -> None:
        print(f"[FASTSOLVER-ERR] {msg}{_format_fields(fields)}", flush=True)

    def debug(self, msg: str, **fields: Any) -> None:
        print(f"[FASTSOLVER-DEBUG] {msg}{_format_fields(fields)}", flush=True)


class CombinedLogger:
    """
    Fans out log calls to multiple loggers.
    Used to ensure verbose console logs occur even if a structured logger is present.
    """

    def __init__(self, *loggers: Any) -> None:
        self._loggers = [lg for lg in loggers if lg is not None]

    def _broadcast(self, method_name: str, msg: str, **kwargs: Any) -> None:
        for lg in self._loggers:
            # Try specific method (e.g. lg.debug), fallback to info, or skip if missing
            fn = getattr(lg, method_name, None)
            if fn is None and method_name != "info":
                fn = getattr(lg, "info", None)
            if callable(fn):
                fn(msg, **kwargs)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("debug", msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("info", msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("warning", msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("error", msg, **kwargs)


def get_logger(logger: Optional[Any] = None) -> Any:
    """
    Returns the appropriate logger instance.

    1. If verbose debug is OFF: return ``logger`` as given (possibly None).
    2. If verbose debug is ON: return a ``ConsoleLogger`` when ``logger`` is
       None, else ``CombinedLogger(logger, ConsoleLogger())`` so console
       output is not suppressed by the presence of a structured logger.
    """
    if not want_verbose_debug():
        return logger

    console = ConsoleLogger()
    if logger is None:
        return console
    if isinstance(logger, (CombinedLogger, ConsoleLogger)):
        return logger
    return CombinedLogger(logger, console)


def log_operator_event(
    logger: Optional[Any],
    event: str,
    **fields: Any,
) -> None:
    """
    Emit a structured event if a logger is available.

    With no logger and verbose debug off this is a no-op, so hot paths can
    call it unconditionally.
    """
    if logger is None and not want_verbose_debug():
        return

    resolved = get_logger(logger)
    if resolved is None:
        return

    log_fn = getattr(resolved, get_log_level(), None)
    if not callable(log_fn):
        log_fn = getattr(resolved, "info", None)
    if callable(log_fn):
        log_fn(event, **fields)


# ---------------------------------------------------------------------------
# Tensor debugging
# ---------------------------------------------------------------------------


def debug_tensor_stats(name: str, x: Any, logger: Optional[Any] = None) -> None:
    """
    Debug print that never crashes if x is list/None/etc.
    If logger is None, it respects the global verbosity setting.
    """
    if logger is None:
        if not want_verbose_debug():
            return
        logger = ConsoleLogger()

    if x is None:
        logger.debug(f"{name}: <None>")
        return

    if isinstance(x, Tensor):
        t = x
    else:
        try:
            t = torch.as_tensor(x)
        except (TypeError, ValueError, RuntimeError):
            logger.debug(f"{name}: <{type(x).__name__}> (not a tensor)")
            return

    if t.numel() == 0:
        logger.debug(f"{name}: empty tensor shape={tuple(t.shape)}")
        return

    shape = tuple(t.shape)
    t = t.detach()
    if t.is_complex():
        mag = t.abs()
        logger.debug(
            f"{name}: shape={shape} (complex), "
            f"MaxMag={mag.max().item():.3e}, "
            f"MeanMag={mag.mean().item():.3e}"
        )
        return

    t_float = t.to(torch.float64)
    logger.debug(
        f"{name}: shape={shape}, "
        f"min={t_float.min().item():.3e}, "
        f"max={t_float.max().item():.3e}, "
        f"mean={t_float.mean().item():.3e}"
    )

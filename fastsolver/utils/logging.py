from __future__ import annotations

import datetime as _dt
import io
import json
import math
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import torch

__all__ = ["JsonlLogger"]


# --------------------------------------------
# JSON utilities (NaN/Inf safe + compact)
# --------------------------------------------

_FULL_TENSOR_MAX_NUMEL = 1024


def _sanitize_float(v: float) -> Any:
    if math.isfinite(v):
        return v
    if math.isnan(v):
        return "NaN"
    return "Infinity" if v > 0 else "-Infinity"


def _tensor_summary(t: torch.Tensor) -> Dict[str, Any]:
    t_cpu = t.detach().cpu()
    summary: Dict[str, Any] = {
        "_type": "tensor_summary",
        "shape": list(t_cpu.shape),
        "dtype": str(t_cpu.dtype),
    }
    if t_cpu.numel() == 0:
        return summary
    # complex tensors are summarised by magnitude
    vals = t_cpu.abs() if t_cpu.is_complex() else t_cpu
    vals = vals.to(torch.float64)
    summary["min"] = _sanitize_float(float(vals.min().item()))
    summary["max"] = _sanitize_float(float(vals.max().item()))
    summary["mean"] = _sanitize_float(float(vals.mean().item()))
    return summary


def _json_sanitize(v: Any) -> Any:
    """
    Convert values into JSON-safe primitives.

    Rules:
    - Finite floats are emitted as-is; NaN / +-Inf are stringified.
    - complex numbers become {"re": ..., "im": ...}.
    - torch.Tensors:
        * small (<= 1024 elements): full .tolist() (complex split into re/im)
        * large: summarized with shape/dtype/min/max/mean
    - torch dtypes / devices and enums are stringified.
    - Containers are handled recursively.
    - Anything else that json.dumps can't handle is stringified.
    """
    if isinstance(v, bool) or v is None or isinstance(v, (int, str)):
        return v
    if isinstance(v, float):
        return _sanitize_float(v)
    if isinstance(v, complex):
        return {"re": _sanitize_float(v.real), "im": _sanitize_float(v.imag)}

    if isinstance(v, torch.Tensor):
        t = v.detach()
        if t.numel() <= _FULL_TENSOR_MAX_NUMEL:
            if t.is_complex():
                return {
                    "re": _json_sanitize(t.real.cpu().tolist()),
                    "im": _json_sanitize(t.imag.cpu().tolist()),
                }
            return _json_sanitize(t.cpu().tolist())
        return _tensor_summary(t)

    if isinstance(v, (torch.dtype, torch.device)):
        return str(v)

    if isinstance(v, dict):
        return {str(k): _json_sanitize(val) for k, val in v.items()}
    if isinstance(v, (list, tuple)):
        return [_json_sanitize(x) for x in v]
    if isinstance(v, (set, frozenset)):
        # sets are unordered; sort their sanitized representation for stability
        return sorted((_json_sanitize(x) for x in v), key=repr)

    try:
        json.dumps(v)
        return v
    except (TypeError, ValueError):
        return str(v)


def _json_dump_line(obj: Dict[str, Any]) -> str:
    """
    Dump a single JSON object to a compact UTF-8 JSON string, after sanitization.
    """
    return json.dumps(_json_sanitize(obj), separators=(",", ":"), ensure_ascii=False)


# --------------------------------------------
# JSONL Logger (append-only, thread-safe)
# --------------------------------------------


class JsonlLogger:
    """
    Minimal, robust JSONL event logger.

    - Safe for NaN/Inf and complex values; values are sanitized.
    - Safe for torch tensors; large tensors are summarized.
    - Never raises to callers on IO problems (logging must not break numerics).
    - .info/.debug/.warning/.error all write a single JSON object per line.
    - Adds "ts", "level", "msg" fields plus any structured k/v pairs.
    """

    def __init__(self, out_dir: Path | str):
        self.dir = Path(out_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / "events.jsonl"
        self._lock = threading.Lock()
        self._stream: Optional[io.TextIOBase] = None
        self._open()

    # ----- context manager support -----
    def __enter__(self) -> "JsonlLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ----- file handling -----
    def _open(self) -> None:
        try:
            self._stream = self.path.open("a", encoding="utf-8")
        except OSError:
            self._stream = None

    def close(self) -> None:
        """
        Close the underlying stream; future writes will attempt to reopen.
        """
        with self._lock:
            if self._stream is not None:
                try:
                    self._stream.flush()
                    self._stream.close()
                except OSError:
                    pass
            self._stream = None

    # ------------- Core write -------------
    def _emit(self, level: str, msg: str, **fields: Any) -> None:
        rec: Dict[str, Any] = {
            "ts": _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": level,
            "msg": msg,
        }
        if fields:
            rec.update(fields)

        line = _json_dump_line(rec)

        with self._lock:
            try:
                if self._stream is None:
                    self._open()
                if self._stream is not None:
                    self._stream.write(line + "\n")
                    self._stream.flush()
            except OSError:
                # swallow IO errors; logging must never break the caller
                return

    # ------------- Public API (level helpers) -------------
    def info(self, msg: str, **fields: Any) -> None:
        self._emit("INFO", msg, **fields)

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit("DEBUG", msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit("WARN", msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        """
        Log an error. If the caller passes exc_info=True, attach traceback text
        into a "trace" field but do not re-raise.
        """
        if fields.pop("exc_info", False):
            import traceback

            fields["trace"] = traceback.format_exc()
        self._emit("ERROR", msg, **fields)

    def phase_start(self, name: str, **fields: Any) -> None:
        """
        Mark the start of a logical phase/section of the run.
        """
        self._emit("INFO", "Phase start", phase=name, **fields)

    def phase_end(self, name: str, **fields: Any) -> None:
        """
        Mark the end of a logical phase/section of the run.
        """
        self._emit("INFO", "Phase end", phase=name, **fields)

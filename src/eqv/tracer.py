# -----------------------------------------------------------------------------
# Tracing utility
# Purpose:
#   Append-only trace collector recording structured events (parse, unknown
#   classification, evaluation, issues) while verifying a step. Produces a
#   JSON-friendly list returned with every result, and can persist a whole
#   submission trace to disk for later review.
# -----------------------------------------------------------------------------

from __future__ import annotations
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class TraceStep:
    # kind: event label ("parsed", "case", "evaluated", "issue", ...)
    kind: str
    detail: Dict[str, Any]


class Tracer:
    def __init__(self): self._steps: List[TraceStep] = []
    def add(self, kind: str, detail: Dict[str, Any]): self._steps.append(TraceStep(kind, detail))

    def kinds(self) -> List[str]:
        return [s.kind for s in self._steps]

    def steps(self) -> List[Dict[str, Any]]:
        # JSON-ready copy returned inside StepResult.trace
        return [{"kind": s.kind, "detail": s.detail} for s in self._steps]


def ts() -> str:
    return time.strftime("%Y%m%d_%H%M%SZ", time.gmtime())


def save_trace(meta: Dict[str, Any], request: Dict[str, Any], result: Dict[str, Any],
               trace_dir: Optional[str] = None) -> str:
    """
    Write one submission trace as JSON under `trace_dir` (env TRACE_DIR, default 'traces').
    Returns the written file path.
    """
    trace_dir = trace_dir or os.getenv("TRACE_DIR", "traces")
    os.makedirs(trace_dir, exist_ok=True)
    data = {"meta": meta, "input": request, "result": result}
    fname = f"run_{ts()}_{time.time_ns() % 1_000_000:06d}.json"
    fpath = os.path.join(trace_dir, fname)
    with open(fpath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
    return fpath

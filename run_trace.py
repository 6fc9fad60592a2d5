"""
Run-scoped tracing for comparison runs.

Provides a thread-local TraceContext that records:
  - Per-stage timing (travel_times, analytics) with error capture
  - Per-outbound-call timing to the Distance Matrix API, including
    whether the call ended in the straight-line fallback
  - End-of-run summary (elapsed, API calls, fallbacks, outcome)

Usage:
    from run_trace import TraceContext, get_trace, set_trace, clear_trace

    ctx = TraceContext(trace_id=run_id)
    set_trace(ctx)
    with ctx.stage("travel_times"):
        ...
    ctx.log_summary()
    clear_trace()

    # In API clients:
    trace = get_trace()
    if trace:
        trace.record_api_call(...)
"""

import time
import threading
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

logger = logging.getLogger(__name__)


# =============================================================================
# Data classes for trace records
# =============================================================================

@dataclass
class APICallRecord:
    """One outbound call (or one fallback estimate standing in for it)."""
    service: str          # "distance_matrix"
    endpoint: str         # "batch:walking", "single:transit", ...
    elapsed_ms: int
    status_code: int
    provider_status: str = ""   # e.g. Google "OK", "OVER_QUERY_LIMIT", "fallback"
    stage: str = ""


@dataclass
class StageRecord:
    stage_name: str
    elapsed_ms: int = 0
    api_calls_made: int = 0
    error_class: str = ""
    error_message: str = ""


# =============================================================================
# Trace context
# =============================================================================

@dataclass
class TraceContext:
    """Accumulates timing data for a single comparison run."""
    trace_id: str
    run_start: float = field(default_factory=time.time)
    stages: List[StageRecord] = field(default_factory=list)
    api_calls: List[APICallRecord] = field(default_factory=list)
    fallbacks: int = 0
    fallbacks_by_mode: Dict[str, int] = field(default_factory=dict)
    candidates: int = 0
    _current_stage: str = ""

    @contextmanager
    def stage(self, name: str):
        """Time a block as one stage.  Exceptions are recorded and re-raised."""
        previous = self._current_stage
        self._current_stage = name
        t0 = time.time()
        rec = StageRecord(stage_name=name)
        try:
            yield rec
        except Exception as e:
            rec.error_class = e.__class__.__name__
            rec.error_message = str(e)
            raise
        finally:
            rec.elapsed_ms = int((time.time() - t0) * 1000)
            rec.api_calls_made = sum(1 for c in self.api_calls if c.stage == name)
            self.stages.append(rec)
            self._current_stage = previous
            status = "ERR" if rec.error_class else "OK"
            err_info = f" err={rec.error_class}: {rec.error_message}" if rec.error_class else ""
            logger.info(
                "  [stage] trace=%s %s %s %dms api_calls=%d%s",
                self.trace_id, name, status, rec.elapsed_ms, rec.api_calls_made, err_info,
            )

    def record_api_call(
        self,
        service: str,
        endpoint: str,
        elapsed_ms: int,
        status_code: int,
        provider_status: str = "",
    ):
        self.api_calls.append(APICallRecord(
            service=service,
            endpoint=endpoint,
            elapsed_ms=elapsed_ms,
            status_code=status_code,
            provider_status=provider_status,
            stage=self._current_stage,
        ))
        logger.debug(
            "  [api] trace=%s stage=%s svc=%s ep=%s ms=%d http=%d provider=%s",
            self.trace_id, self._current_stage or "-", service, endpoint,
            elapsed_ms, status_code, provider_status,
        )

    def record_fallback(self, mode: str):
        self.fallbacks += 1
        self.fallbacks_by_mode[mode] = self.fallbacks_by_mode.get(mode, 0) + 1

    def summary_dict(self) -> Dict[str, Any]:
        errored = [s for s in self.stages if s.error_class]
        if errored and len(errored) == len(self.stages):
            outcome = "error"
        elif not self.stages:
            outcome = "empty"
        elif errored or self.fallbacks:
            outcome = "partial"
        else:
            outcome = "success"

        return {
            "trace_id": self.trace_id,
            "total_elapsed_ms": int((time.time() - self.run_start) * 1000),
            "candidates": self.candidates,
            "total_api_calls": len(self.api_calls),
            "fallback_estimates": self.fallbacks,
            "fallbacks_by_mode": dict(self.fallbacks_by_mode),
            "stages": [
                {
                    "stage": s.stage_name,
                    "elapsed_ms": s.elapsed_ms,
                    "api_calls": s.api_calls_made,
                    "error": f"{s.error_class}: {s.error_message}" if s.error_class else None,
                }
                for s in self.stages
            ],
            "final_outcome": outcome,
        }

    def log_summary(self):
        """Emit a single structured summary log line."""
        s = self.summary_dict()
        logger.info(
            "[trace-summary] trace=%s total_ms=%d candidates=%d api_calls=%d "
            "fallbacks=%d outcome=%s",
            s["trace_id"],
            s["total_elapsed_ms"],
            s["candidates"],
            s["total_api_calls"],
            s["fallback_estimates"],
            s["final_outcome"],
        )


# =============================================================================
# Thread-local storage
# =============================================================================

_trace_local = threading.local()


def get_trace() -> Optional[TraceContext]:
    """Get the current run's trace context, or None."""
    return getattr(_trace_local, "ctx", None)


def set_trace(ctx: Optional[TraceContext]):
    _trace_local.ctx = ctx


def clear_trace():
    _trace_local.ctx = None

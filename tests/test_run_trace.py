"""Unit tests for run_trace.py: run-scoped tracing.

Tests cover: stage timing and error capture, API call attribution,
fallback counting, summary outcome, and thread-local storage.
"""

import threading

import pytest

from run_trace import (
    TraceContext,
    clear_trace,
    get_trace,
    set_trace,
)


# =========================================================================
# Stages
# =========================================================================

class TestStages:
    def test_stage_recorded(self):
        ctx = TraceContext(trace_id="t1")
        with ctx.stage("travel_times"):
            pass
        assert [s.stage_name for s in ctx.stages] == ["travel_times"]
        assert ctx.stages[0].elapsed_ms >= 0
        assert ctx.stages[0].error_class == ""

    def test_error_recorded_and_reraised(self):
        ctx = TraceContext(trace_id="t1")
        with pytest.raises(ValueError):
            with ctx.stage("analytics"):
                raise ValueError("bad weights")
        assert ctx.stages[0].error_class == "ValueError"
        assert ctx.stages[0].error_message == "bad weights"

    def test_api_calls_attributed_to_stage(self):
        ctx = TraceContext(trace_id="t1")
        with ctx.stage("travel_times"):
            ctx.record_api_call("distance_matrix", "batch:walking", 120, 200, "OK")
            ctx.record_api_call("distance_matrix", "batch:driving", 90, 200, "OK")
        ctx.record_api_call("distance_matrix", "single:transit", 50, 200, "OK")

        assert ctx.stages[0].api_calls_made == 2
        assert ctx.api_calls[2].stage == ""


# =========================================================================
# Summary
# =========================================================================

class TestSummary:
    def test_success(self):
        ctx = TraceContext(trace_id="t1", candidates=3)
        with ctx.stage("travel_times"):
            pass
        s = ctx.summary_dict()
        assert s["final_outcome"] == "success"
        assert s["candidates"] == 3
        assert s["stages"][0]["error"] is None

    def test_fallbacks_make_partial(self):
        ctx = TraceContext(trace_id="t1")
        with ctx.stage("travel_times"):
            ctx.record_fallback("transit")
        s = ctx.summary_dict()
        assert s["final_outcome"] == "partial"
        assert s["fallback_estimates"] == 1

    def test_fallbacks_counted_per_mode(self):
        ctx = TraceContext(trace_id="t1")
        for mode in ("transit", "walking", "transit"):
            ctx.record_fallback(mode)
        s = ctx.summary_dict()
        assert s["fallback_estimates"] == 3
        assert s["fallbacks_by_mode"] == {"transit": 2, "walking": 1}

    def test_all_errored(self):
        ctx = TraceContext(trace_id="t1")
        with pytest.raises(RuntimeError):
            with ctx.stage("analytics"):
                raise RuntimeError("x")
        assert ctx.summary_dict()["final_outcome"] == "error"

    def test_empty(self):
        assert TraceContext(trace_id="t1").summary_dict()["final_outcome"] == "empty"

    def test_log_summary(self, caplog):
        ctx = TraceContext(trace_id="abc")
        with caplog.at_level("INFO"):
            ctx.log_summary()
        assert "[trace-summary] trace=abc" in caplog.text


# =========================================================================
# Thread-local storage
# =========================================================================

class TestThreadLocal:
    def test_set_get_clear(self):
        ctx = TraceContext(trace_id="t1")
        set_trace(ctx)
        assert get_trace() is ctx
        clear_trace()
        assert get_trace() is None

    def test_isolated_between_threads(self):
        set_trace(TraceContext(trace_id="main"))
        seen = []
        t = threading.Thread(target=lambda: seen.append(get_trace()))
        t.start()
        t.join()
        clear_trace()
        assert seen == [None]

"""Unit tests for osinthub/utils/logger.py.

Verifies:
  - PerformanceLogger reports duration_ms through its log entry, at DEBUG
    when fast, WARNING when slow, ERROR when the block raises
  - add_request_id only tags entries while a request id is bound
  - mask_wallet never reveals more than the first six characters
"""

from __future__ import annotations

import pytest

from osinthub.utils.logger import (
    PerformanceLogger,
    add_request_id,
    clear_request_id,
    mask_wallet,
    set_request_id,
)


class _RecordingLogger:

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def __getattr__(self, level: str):
        def _log(event: str, **kwargs) -> None:
            self.calls.append((level, event, kwargs))

        return _log


class TestPerformanceLogger:

    def test_fast_operation_logs_debug_with_duration(self) -> None:
        recorder = _RecordingLogger()
        with PerformanceLogger("rpc_call", recorder, warn_after_ms=10_000):
            pass
        [(level, event, fields)] = recorder.calls
        assert level == "debug"
        assert event == "rpc_call completed"
        assert fields["operation"] == "rpc_call"
        assert fields["duration_ms"] >= 0

    def test_slow_operation_logs_warning(self) -> None:
        recorder = _RecordingLogger()
        with PerformanceLogger("rpc_call", recorder, warn_after_ms=-1):
            pass
        assert recorder.calls[0][0] == "warning"

    def test_failure_logs_error_and_propagates(self) -> None:
        recorder = _RecordingLogger()
        with pytest.raises(ValueError):
            with PerformanceLogger("rpc_call", recorder):
                raise ValueError("bad hex")
        [(level, event, fields)] = recorder.calls
        assert level == "error"
        assert event == "rpc_call failed"
        assert fields["error"] == "bad hex"
        assert "duration_ms" in fields


class TestRequestIdProcessor:

    def test_tags_entry_while_bound(self) -> None:
        set_request_id("01HZXAAAAAAAAAAAAAAAAAAAAA")
        try:
            event = add_request_id(None, "info", {"event": "x"})
        finally:
            clear_request_id()
        assert event["request_id"] == "01HZXAAAAAAAAAAAAAAAAAAAAA"

    def test_leaves_entry_alone_when_unbound(self) -> None:
        assert add_request_id(None, "info", {"event": "x"}) == {"event": "x"}


class TestMaskWallet:

    def test_keeps_prefix_only(self) -> None:
        assert mask_wallet("0xAbCdEf0123456789abcdef0123456789ABCDEF01") == "0xAbCd..."

    @pytest.mark.parametrize("wallet", [None, ""])
    def test_missing_wallet(self, wallet) -> None:
        assert mask_wallet(wallet) == "<none>"

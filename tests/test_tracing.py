"""Tests for the tracing module."""

import logging

import pytest

from cloudrm_sdk.tracing import DiagnosticScope, diagnostic_scope


@pytest.fixture
def scope_records(caplog):
    """Capture diagnostic scope records."""
    caplog.set_level(logging.DEBUG, logger="cloudrm_sdk.tracing")

    def _records():
        return [r for r in caplog.records if r.name == "cloudrm_sdk.tracing"]

    return _records


class TestDiagnosticScope:
    """Tests for DiagnosticScope."""

    def test_success(self, scope_records):
        """Test start and succeeded records."""
        with DiagnosticScope("virtualMachines.Get", {"collection": "vms"}):
            pass

        records = scope_records()
        assert [r.event for r in records] == ["start", "succeeded"]
        assert records[0].getMessage() == "virtualMachines.Get start"
        assert all(r.scope == "virtualMachines.Get" for r in records)
        assert all(r.collection == "vms" for r in records)
        assert records[1].duration_ms >= 0

    def test_failure_is_recorded_and_reraised(self, scope_records):
        """Test that failures log the error type and propagate."""
        with pytest.raises(KeyError):
            with DiagnosticScope("virtualMachines.Delete"):
                raise KeyError("vm1")

        records = scope_records()
        assert [r.event for r in records] == ["start", "failed"]
        assert records[1].levelno == logging.WARNING
        assert records[1].error_type == "KeyError"

    def test_failed_before_start(self, scope_records):
        """Test that an unstarted scope reports zero duration."""
        DiagnosticScope("x").failed(RuntimeError("early"))
        assert scope_records()[-1].duration_ms == 0.0


class TestDiagnosticScopeDecorator:
    """Tests for the diagnostic_scope decorator."""

    def test_sync_function(self, scope_records):
        """Test wrapping a plain function."""

        @diagnostic_scope("things.List", page=1)
        def first_page(page_size_hint=None):
            """Fetch the first page."""
            return ["a"]

        assert first_page() == ["a"]
        assert first_page.__name__ == "first_page"
        assert first_page.__doc__ == "Fetch the first page."

        records = scope_records()
        assert [r.event for r in records] == ["start", "succeeded"]
        assert records[0].page == 1

    def test_sync_function_error(self, scope_records):
        """Test that exceptions pass through unchanged."""

        @diagnostic_scope("things.Get")
        def get():
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            get()
        assert scope_records()[-1].event == "failed"

    @pytest.mark.asyncio
    async def test_async_function(self, scope_records):
        """Test that the scope spans the awaited call."""

        @diagnostic_scope("things.List")
        async def first_page():
            assert [r.event for r in scope_records()] == ["start"]
            return ["a"]

        assert await first_page() == ["a"]
        assert [r.event for r in scope_records()] == ["start", "succeeded"]

    @pytest.mark.asyncio
    async def test_async_function_error(self, scope_records):
        """Test async failures."""

        @diagnostic_scope("things.Get")
        async def get():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await get()
        assert [r.event for r in scope_records()] == ["start", "failed"]

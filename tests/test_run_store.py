"""Tests for run history persistence."""

import pytest

from nodeflow.core.exceptions import StorageError
from nodeflow.models.core import ErrorEntry, ExecutionReport, LogEntry, LogStatus
from nodeflow.storage import RunStore, create_database_engine, create_session_factory, create_tables, drop_tables


@pytest.fixture
def store():
    engine = create_database_engine("sqlite:///:memory:")
    create_tables(engine)
    yield RunStore(create_session_factory(engine))
    drop_tables(engine)
    engine.dispose()


def make_report(success=True):
    errors = [] if success else [ErrorEntry(node_id="b", node_kind="webhook", message="timeout")]
    return ExecutionReport(
        success=success,
        logs=[LogEntry(node_id="a", node_kind="trigger", status=LogStatus.SUCCESS, result={"ok": True})],
        results={"a": {"ok": True}},
        execution_order=["a", "b"],
        execution_time_ms=12.5,
        errors=errors
    )


class TestRunStore:
    """Test cases for RunStore."""

    def test_save_and_get(self, store):
        run_id = store.save_report(make_report(), node_count=2)

        stored = store.get_run(run_id)

        assert stored["runId"] == run_id
        assert stored["success"] is True
        assert stored["executionOrder"] == ["a", "b"]
        assert stored["results"] == {"a": {"ok": True}}
        assert stored["logs"][0]["nodeId"] == "a"

    def test_explicit_run_id(self, store):
        assert store.save_report(make_report(), node_count=2, run_id="run-1") == "run-1"
        assert store.get_run("run-1")["runId"] == "run-1"

    def test_duplicate_run_id_is_a_storage_error(self, store):
        store.save_report(make_report(), node_count=2, run_id="run-1")

        with pytest.raises(StorageError):
            store.save_report(make_report(), node_count=2, run_id="run-1")

    def test_missing_run(self, store):
        with pytest.raises(StorageError) as exc_info:
            store.get_run("nope")

        assert exc_info.value.message == "Run not found: nope"

    def test_list_runs(self, store):
        ok = store.save_report(make_report(), node_count=2)
        failed = store.save_report(make_report(success=False), node_count=3)

        runs = {run.run_id: run for run in store.list_runs()}

        assert set(runs) == {ok, failed}
        assert runs[failed].success is False
        assert runs[failed].error_count == 1
        assert runs[failed].node_count == 3
        assert runs[ok].execution_time_ms == 12.5

    def test_list_runs_limit(self, store):
        for _ in range(3):
            store.save_report(make_report(), node_count=1)

        assert len(store.list_runs(limit=2)) == 2

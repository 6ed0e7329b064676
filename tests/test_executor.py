"""Tests for safe query execution and cancellation."""

import logging
import threading
import time

import duckdb
import pytest

from scoped_query.datasources.base import CancelToken, QueryCancelledError, QueryResult
from scoped_query.processor import AssembledQuery, ExecutionStatus, SafeExecutor


def test_runs_parameterized_query(hotel_db):
    """Test rows come back as dicts keyed by column name."""
    executor = SafeExecutor(hotel_db)

    result = executor.run("SELECT id, name FROM hotels WHERE branch = $1 ORDER BY id", ("North",))

    assert result.status is ExecutionStatus.OK
    assert result.columns == ["id", "name"]
    assert result.rows == [{"id": 3, "name": "Harbor View"}, {"id": 7, "name": "Lakeside"}]
    assert len(result) == 2


def test_missing_table_is_empty_result(hotel_db, caplog):
    """Test an undefined relation becomes an explicit empty result."""
    executor = SafeExecutor(hotel_db)

    with caplog.at_level(logging.INFO, logger="scoped_query.processor.executor"):
        result = executor.run("SELECT * FROM inspections WHERE branch = $1", ("North",))

    assert result.status is ExecutionStatus.TABLE_MISSING
    assert result.is_table_missing
    assert result.rows == []
    assert "Relation missing" in caplog.text


def test_fatal_errors_propagate(hotel_db, caplog):
    """Test other errors are logged without values and re-raised."""
    executor = SafeExecutor(hotel_db)

    with caplog.at_level(logging.ERROR, logger="scoped_query.processor.executor"):
        with pytest.raises(duckdb.Error):
            executor.run("SELECT * FROM hotels WHERE branch = $1 AND no_such_column = 1", ("Secret North",))

    assert "1 params" in caplog.text
    assert "no_such_column" in caplog.text
    assert "Secret North" not in caplog.text


def test_syntax_errors_propagate(hotel_db):
    """Test malformed SQL is not mistaken for a missing table."""
    executor = SafeExecutor(hotel_db)

    with pytest.raises(duckdb.Error):
        executor.run("SELEC * FROM hotels")


def test_request_context_in_logs(fake_datasource, caplog):
    """Test failures are tagged with the request context."""
    fake_datasource.results.append(fake_datasource.driver_errors[0]("deadlock detected"))
    executor = SafeExecutor(fake_datasource)

    with caplog.at_level(logging.ERROR, logger="scoped_query.processor.executor"):
        with pytest.raises(fake_datasource.driver_errors[0]):
            executor.run("UPDATE tickets SET status = $1", ("closed",), context={"request_id": "r-17"})

    assert "[request_id=r-17]" in caplog.text
    record = caplog.records[-1]
    assert record.extra_fields == {"request_id": "r-17"}


def test_fake_undefined_relation(fake_datasource):
    """Test the data source decides what counts as an undefined relation."""
    fake_datasource.results.append(
        fake_datasource.driver_errors[0]("relation does not exist", undefined_relation=True)
    )
    executor = SafeExecutor(fake_datasource)

    assert executor.run("SELECT * FROM hotel_rooms").is_table_missing


def test_unsatisfiable_query_is_not_sent(fake_datasource):
    """Test a query with a FALSE scope short-circuits."""
    executor = SafeExecutor(fake_datasource)

    result = executor.run_query(AssembledQuery("SELECT * FROM users WHERE FALSE", (), True))

    assert result.status is ExecutionStatus.SKIPPED
    assert result.rows == []
    assert fake_datasource.calls["execute"] == 0


def test_run_query_sends_satisfiable_query(fake_datasource):
    """Test assembled queries reach the data source with their params."""
    fake_datasource.results.append(QueryResult(rows=[{"id": 1}], row_count=1, columns=["id"]))
    executor = SafeExecutor(fake_datasource)

    result = executor.run_query(AssembledQuery("SELECT id FROM users WHERE branch = $1", ("North",)))

    assert result.rows == [{"id": 1}]
    assert fake_datasource.executed == [("SELECT id FROM users WHERE branch = $1", ("North",))]


def test_cancelled_token_stops_query(hotel_db):
    """Test a cancelled request never runs its query."""
    executor = SafeExecutor(hotel_db)
    token = CancelToken()
    token.cancel()

    with pytest.raises(QueryCancelledError):
        executor.run("SELECT * FROM hotels", cancel_token=token)


def test_cancel_token_fires_registered_interrupt():
    """Test cancel() interrupts the statement in flight."""
    token = CancelToken()
    interrupted = []

    with token.interrupt_with(lambda: interrupted.append(True)):
        token.cancel()

    assert interrupted == [True]
    assert token.cancelled
    with pytest.raises(QueryCancelledError):
        token.check()


def test_cancel_token_deadline_interrupts():
    """Test a deadline fires the interrupt from a timer thread."""
    token = CancelToken(timeout=0.05)
    fired = threading.Event()

    with token.interrupt_with(fired.set):
        assert fired.wait(timeout=2.0)

    assert token.cancelled


def test_cancel_token_without_deadline():
    """Test a token without timeout never expires."""
    token = CancelToken()

    assert token.remaining() is None
    assert not token.expired()
    token.check()


def test_expired_token_refuses_new_statements():
    """Test a passed deadline stops statements before they start."""
    token = CancelToken(timeout=0.01)
    time.sleep(0.03)

    assert token.expired()
    with pytest.raises(QueryCancelledError):
        with token.interrupt_with(lambda: None):
            pass

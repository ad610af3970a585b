from unittest.mock import patch

import pytest
from fhir_conformance.db import create_schema, fetch_all, fetch_one, make_engine, save_sequence_result
from fhir_conformance.exceptions import ResultPersistenceError
from fhir_conformance.runner.aggregate import aggregate
from fhir_conformance.sequences.base import Outcome, OutcomeKind


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'results.db'}")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def run_result():
    outcomes = [
        Outcome(
            test_key="patient_read",
            title="Server returns expected results from Patient read resource",
            kind=OutcomeKind.PASS,
            ordinal=0,
            execution_time=0.25,
        ),
        Outcome(
            test_key="patient_history",
            title="Server returns a history of Patient",
            kind=OutcomeKind.FAIL,
            message="Bad response code: expected 200, but found 404",
            optional=True,
            ordinal=1,
        ),
    ]
    return aggregate("argonaut_data_query", outcomes)


class TestSaveSequenceResult:
    def test_stores_summary_row(self, engine, run_result):
        stored_id = save_sequence_result(engine, run_result, testing_instance_id="inst-1")

        assert stored_id == run_result.id
        row = fetch_one(engine, "SELECT * FROM sequence_results WHERE id = :id", {"id": run_result.id})
        assert row["name"] == "argonaut_data_query"
        assert row["result"] == "pass"
        assert row["passed_count"] == 1
        assert row["failed_count"] == 0
        assert row["warning_count"] == 1
        assert row["wait_index"] == run_result.wait_index
        assert row["testing_instance_id"] == "inst-1"
        assert row["abort_reason"] is None

    def test_stores_test_rows_in_order(self, engine, run_result):
        save_sequence_result(engine, run_result)

        rows = fetch_all(
            engine,
            "SELECT test_key, result, optional, execution_time, message "
            "FROM test_results WHERE sequence_result_id = :id ORDER BY ordinal",
            {"id": run_result.id},
        )
        assert [r["test_key"] for r in rows] == ["patient_read", "patient_history"]
        assert [r["result"] for r in rows] == ["pass", "fail"]
        assert rows[0]["execution_time"] == 250
        assert rows[1]["execution_time"] is None
        assert bool(rows[1]["optional"]) is True
        assert "404" in rows[1]["message"]

    def test_aborted_result(self, engine):
        result = aggregate("argonaut_data_query", [], abort_reason="Client must be authorized")

        save_sequence_result(engine, result)

        row = fetch_one(engine, "SELECT result, abort_reason FROM sequence_results")
        assert row == {"result": "fail", "abort_reason": "Client must be authorized"}
        assert fetch_all(engine, "SELECT * FROM test_results") == []

    def test_duplicate_id_raises(self, engine, run_result):
        save_sequence_result(engine, run_result)

        with pytest.raises(ResultPersistenceError, match=run_result.id):
            save_sequence_result(engine, run_result)
        assert len(fetch_all(engine, "SELECT id FROM sequence_results")) == 1


def test_fetch_one_empty(engine):
    assert fetch_one(engine, "SELECT * FROM sequence_results") == {}


def test_wait_index_increases_across_processes(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'shared.db'}"
    first_engine = make_engine(db_url)
    create_schema(first_engine)
    save_sequence_result(first_engine, aggregate("argonaut_data_query", []))
    first_engine.dispose()

    # a fresh process starts with no in-memory counter state
    with patch("fhir_conformance.runner.aggregate._last_wait_index", 0):
        second_engine = make_engine(db_url)
        save_sequence_result(second_engine, aggregate("argonaut_data_query", []))
        rows = fetch_all(second_engine, "SELECT wait_index FROM sequence_results ORDER BY rowid")
        second_engine.dispose()

    first, second = [r["wait_index"] for r in rows]
    assert first > 1
    assert second > first

"""Database persistence of sequence run results."""

from typing import Any, Dict, List, Optional
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone

from fhir_conformance.exceptions import ResultPersistenceError
from fhir_conformance.logging_config import get_logger
from fhir_conformance.retry import retry_store
from fhir_conformance.sequences.base import SequenceRunResult

logger = get_logger("db")

metadata = MetaData()

sequence_results = Table(
    "sequence_results",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("result", String(16), nullable=False),  # pass | fail
    Column("passed_count", Integer, nullable=False, default=0),
    Column("failed_count", Integer, nullable=False, default=0),
    Column("wait_index", BigInteger, nullable=False, default=0),
    Column("warning_count", Integer, nullable=False, default=0),
    Column("skipped_count", Integer, nullable=False, default=0),
    Column("error_count", Integer, nullable=False, default=0),
    Column("abort_reason", Text, nullable=True),
    Column("testing_instance_id", String(64), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

test_results = Table(
    "test_results",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "sequence_result_id",
        String(64),
        ForeignKey("sequence_results.id"),
        nullable=False,
    ),
    Column("test_key", String(255), nullable=False),
    Column("title", Text, nullable=False),
    Column("result", String(16), nullable=False),  # pass | fail | skip | error
    Column("message", Text, nullable=True),
    Column("optional", Boolean, nullable=False, default=False),
    Column("ordinal", Integer, nullable=False),
    Column("execution_time", Integer, nullable=True),  # milliseconds
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def make_engine(db_url: str, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine; pooling options only for server databases."""
    if db_url.startswith("sqlite"):
        return create_engine(db_url, future=True, echo=echo)
    return create_engine(
        db_url,
        future=True,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def fetch_one(engine: Engine, sql: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Execute SQL and return first row as dict."""
    with engine.connect() as conn:
        row = conn.execute(text(sql), params or {}).mappings().first()
        return dict(row or {})


def fetch_all(engine: Engine, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Execute SQL and return all rows as list of dicts."""
    with engine.connect() as conn:
        rows = conn.execute(text(sql), params or {}).mappings().all()
        return [dict(r) for r in rows]


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value)


def _sequence_row(result: SequenceRunResult, testing_instance_id: Optional[str]) -> Dict[str, Any]:
    return {
        "id": result.id,
        "name": result.sequence_name,
        "result": result.result,
        "passed_count": result.passed_count,
        "failed_count": result.failed_count,
        "wait_index": result.wait_index,
        "warning_count": result.warning_count,
        "skipped_count": result.skipped_count,
        "error_count": result.error_count,
        "abort_reason": result.abort_reason,
        "testing_instance_id": testing_instance_id,
        "created_at": _parse_timestamp(result.created_at),
    }


def _test_rows(result: SequenceRunResult) -> List[Dict[str, Any]]:
    rows = []
    for outcome in result.outcomes:
        elapsed = outcome.execution_time
        rows.append(
            {
                "sequence_result_id": result.id,
                "test_key": outcome.test_key,
                "title": outcome.title,
                "result": outcome.kind.value,
                "message": outcome.message,
                "optional": outcome.optional,
                "ordinal": outcome.ordinal,
                "execution_time": int(elapsed * 1000) if elapsed is not None else None,
                "created_at": _parse_timestamp(outcome.executed_at or result.created_at),
            }
        )
    return rows


@retry_store()
def _insert(engine: Engine, sequence_row: Dict[str, Any], rows: List[Dict[str, Any]]) -> None:
    with engine.begin() as conn:
        conn.execute(sequence_results.insert(), sequence_row)
        if rows:
            conn.execute(test_results.insert(), rows)


def save_sequence_result(
    engine: Engine,
    result: SequenceRunResult,
    testing_instance_id: Optional[str] = None,
) -> str:
    """Store a run result and its test outcomes in one transaction; return its id."""
    try:
        _insert(engine, _sequence_row(result, testing_instance_id), _test_rows(result))
    except SQLAlchemyError as e:
        raise ResultPersistenceError(
            f"Could not store result {result.id} for sequence {result.sequence_name}: {e}",
            result_id=result.id,
        ) from e
    logger.info(
        f"Stored result {result.id} for sequence {result.sequence_name}",
        extra={
            "sequence_result_id": result.id,
            "sequence": result.sequence_name,
            "wait_index": result.wait_index,
        },
    )
    return result.id

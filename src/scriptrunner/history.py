# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Execution history.

HistoryStore is the contract the dispatcher depends on. SqlHistoryStore keeps
records in any SQLAlchemy-supported database (SQLite by default), caps
stored text and purges records older than the retention window on every
write.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, create_engine, delete, desc, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from scriptrunner.schemas import ExecutionRecord, ExecutionStatus

logger = logging.getLogger(__name__)

MAX_STORED_OUTPUT = 20000
RETENTION_DAYS = 30

Base = declarative_base()


class HistoryStore(Protocol):
    def store(self, record: ExecutionRecord) -> None: ...

    def update(self, record: ExecutionRecord) -> None: ...

    def query(self, limit: int = 100) -> List[ExecutionRecord]: ...

    def get(self, execution_id: str) -> Optional[ExecutionRecord]: ...


class ScriptExecution(Base):
    __tablename__ = "script_execution"

    execution_id = Column(String(36), primary_key=True)
    script_id = Column(String(200), nullable=False, index=True)
    script_name = Column(String(200), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    finished_at = Column(DateTime(timezone=True))
    parameters_json = Column(Text, default="{}")
    status = Column(String(20), nullable=False)
    exit_code = Column(Integer, default=0)
    stdout = Column(Text, default="")
    stderr = Column(Text, default="")
    ran_by_user = Column(String(200), nullable=False)
    email_sent = Column(Boolean, default=False)


def _truncate(text: Optional[str]) -> str:
    text = text or ""
    return text if len(text) <= MAX_STORED_OUTPUT else text[:MAX_STORED_OUTPUT]


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: ScriptExecution) -> ExecutionRecord:
    return ExecutionRecord(
        execution_id=row.execution_id,
        script_id=row.script_id,
        script_name=row.script_name,
        started_at=_aware(row.started_at),
        finished_at=_aware(row.finished_at),
        parameters_json=row.parameters_json or "{}",
        status=ExecutionStatus(row.status),
        exit_code=row.exit_code or 0,
        stdout=row.stdout or "",
        stderr=row.stderr or "",
        ran_by_user=row.ran_by_user,
        email_sent=bool(row.email_sent),
    )


def _apply(row: ScriptExecution, record: ExecutionRecord) -> None:
    row.script_id = record.script_id
    row.script_name = record.script_name
    row.started_at = record.started_at
    row.finished_at = record.finished_at
    row.parameters_json = _truncate(record.parameters_json)
    row.status = record.status.value
    row.exit_code = record.exit_code
    row.stdout = _truncate(record.stdout)
    row.stderr = _truncate(record.stderr)
    row.ran_by_user = record.ran_by_user
    row.email_sent = record.email_sent


class SqlHistoryStore:
    """HistoryStore backed by SQLAlchemy."""

    def __init__(self, database_url: str, retention_days: int = RETENTION_DAYS):
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            url = url.set(database=str(Path(url.database).expanduser()))
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(url)
        self.retention_days = retention_days
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def _purge_old(self, session: Session) -> None:
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)
        result = session.execute(delete(ScriptExecution).where(ScriptExecution.started_at < cutoff))
        logger.debug("[History] Purged %s old execution records", result.rowcount)

    def _upsert(self, record: ExecutionRecord) -> None:
        with self._session_factory() as session, session.begin():
            self._purge_old(session)
            row = session.get(ScriptExecution, record.execution_id)
            if row is None:
                row = ScriptExecution(execution_id=record.execution_id)
                session.add(row)
            _apply(row, record)

    def store(self, record: ExecutionRecord) -> None:
        self._upsert(record)
        logger.info("[History] Stored execution record %s status=%s", record.execution_id, record.status.value)

    def update(self, record: ExecutionRecord) -> None:
        self._upsert(record)
        logger.info("[History] Updated execution record %s status=%s", record.execution_id, record.status.value)

    def query(self, limit: int = 100) -> List[ExecutionRecord]:
        """Most recent first."""
        with self._session_factory() as session:
            rows = session.scalars(
                select(ScriptExecution).order_by(desc(ScriptExecution.started_at)).limit(limit)
            ).all()
            return [_to_record(row) for row in rows]

    def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        with self._session_factory() as session:
            row = session.get(ScriptExecution, execution_id)
            return _to_record(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()

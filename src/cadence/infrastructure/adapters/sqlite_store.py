"""
SQLite Progress Store: Infrastructure adapter for a local SQLite database.

Implements ProgressStore on a `progress_records` table keyed by (user_id, card_id).
Every transaction opens with BEGIN IMMEDIATE, so the read of the prior state and
the write of the new one cannot interleave with another writer. Blocking database
work runs in a worker thread.
"""

import asyncio
import logging
import threading
from datetime import timezone
from pathlib import Path

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Engine,
    Float,
    Index,
    Integer,
    create_engine,
    event,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.types import TypeDecorator

from cadence.domain.clock import as_utc
from cadence.domain.constants import DEFAULT_STORE_TIMEOUT
from cadence.domain.errors import StoreUnavailable
from cadence.domain.progress.models import ProgressRecord
from cadence.domain.progress.ports import ProgressStore, ProgressUpdate

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class UtcDateTime(TypeDecorator):
    """Aware UTC datetimes; SQLite keeps no offset, so it is restored on load."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):  # type: ignore[override]
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):  # type: ignore[override]
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class ProgressRow(Base):
    __tablename__ = "progress_records"
    __table_args__ = (
        CheckConstraint("last_grade BETWEEN 0 AND 5", name="ck_progress_last_grade"),
        CheckConstraint("interval >= 0", name="ck_progress_interval"),
        CheckConstraint("ease_factor >= 1.3", name="ck_progress_ease_factor"),
        Index("idx_progress_user_deck", "user_id", "deck_id"),
    )

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    card_id = Column(Integer, primary_key=True, autoincrement=False)
    deck_id = Column(Integer, nullable=False)
    last_grade = Column(Integer, nullable=False)
    interval = Column(Integer, nullable=False)
    ease_factor = Column(Float, nullable=False)
    due_date = Column(UtcDateTime, nullable=False)
    updated_at = Column(UtcDateTime, nullable=False)
    review_count = Column(Integer, nullable=False, default=0)
    lapse_count = Column(Integer, nullable=False, default=0)
    created_at = Column(UtcDateTime, nullable=True)


KEY_COLUMNS = ("user_id", "card_id")


def _row_to_record(row: ProgressRow) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        card_id=row.card_id,
        deck_id=row.deck_id,
        last_grade=row.last_grade,
        interval=row.interval,
        ease_factor=row.ease_factor,
        due_date=row.due_date,
        updated_at=row.updated_at,
        review_count=row.review_count,
        lapse_count=row.lapse_count,
        created_at=row.created_at,
    )


def _record_values(record: ProgressRecord) -> dict:
    return {c.name: getattr(record, c.name) for c in ProgressRow.__table__.columns}


def _create_engine(db_path: Path, timeout: float) -> Engine:
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"timeout": timeout})

    # pysqlite's own transaction handling is turned off so BEGIN is ours
    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class SqliteProgressStore(ProgressStore):
    """
    Persists progress records in SQLite through SQLAlchemy.

    The engine and schema are created on first use; `timeout` bounds how long
    a call waits for another writer's lock before failing with StoreUnavailable.
    """

    def __init__(self, db_path: Path | str, timeout: float = DEFAULT_STORE_TIMEOUT):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._session_factory: sessionmaker[Session] | None = None
        self._init_lock = threading.Lock()

    def _sessions(self) -> sessionmaker[Session]:
        with self._init_lock:
            if self._session_factory is None:
                try:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                    engine = _create_engine(self.db_path, self.timeout)
                    Base.metadata.create_all(engine)
                except (SQLAlchemyError, OSError) as e:
                    logger.error(f"Could not open progress database {self.db_path}: {e}")
                    raise StoreUnavailable(
                        f"Progress database unavailable: {e}", {"path": str(self.db_path)}
                    ) from e
                self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            return self._session_factory

    def _query(self, *criteria, order_by=ProgressRow.card_id) -> list[ProgressRecord]:
        sessions = self._sessions()
        try:
            with sessions() as session:
                rows = session.scalars(select(ProgressRow).where(*criteria).order_by(order_by)).all()
                return [_row_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.warning(f"Progress query failed: {e}")
            raise StoreUnavailable(f"Progress query failed: {e}") from e

    def _upsert(self, user_id: int, card_id: int, fn: ProgressUpdate) -> ProgressRecord:
        sessions = self._sessions()
        try:
            with sessions() as session, session.begin():
                row = session.get(ProgressRow, (user_id, card_id))
                prior = _row_to_record(row) if row else None
                record = fn(prior)
                if (record.user_id, record.card_id) != (user_id, card_id):
                    raise ValueError(
                        f"Update for {(user_id, card_id)} returned a record for "
                        f"{(record.user_id, record.card_id)}"
                    )

                values = _record_values(record)
                stmt = sqlite_insert(ProgressRow.__table__).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(KEY_COLUMNS),
                    set_={k: stmt.excluded[k] for k in values if k not in KEY_COLUMNS},
                )
                session.execute(stmt)

                # Return what was stored, not what fn built
                stored = session.scalars(
                    select(ProgressRow)
                    .where(ProgressRow.user_id == user_id, ProgressRow.card_id == card_id)
                    .execution_options(populate_existing=True)
                ).one()
                saved = _row_to_record(stored)
        except SQLAlchemyError as e:
            logger.warning(f"Upsert failed user={user_id} card={card_id}: {e}")
            raise StoreUnavailable(f"Progress write failed: {e}") from e

        logger.debug(f"Upserted progress user={user_id} card={card_id} ({'update' if prior else 'insert'})")
        return saved

    async def get(self, user_id: int, card_id: int) -> ProgressRecord | None:
        records = await asyncio.to_thread(
            self._query, ProgressRow.user_id == user_id, ProgressRow.card_id == card_id
        )
        return records[0] if records else None

    async def upsert(self, user_id: int, card_id: int, fn: ProgressUpdate) -> ProgressRecord:
        return await asyncio.to_thread(self._upsert, user_id, card_id, fn)

    async def list_by_deck(self, deck_id: int, user_id: int) -> list[ProgressRecord]:
        return await asyncio.to_thread(
            self._query, ProgressRow.user_id == user_id, ProgressRow.deck_id == deck_id
        )

    async def list_by_user(self, user_id: int) -> list[ProgressRecord]:
        return await asyncio.to_thread(self._query, ProgressRow.user_id == user_id)

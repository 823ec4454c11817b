"""
NetShield - Database Layer
SQLAlchemy async backend for the DataStore interface.
"""

from datetime import datetime, timezone
from typing import Optional, List, Any, Dict, Type
import logging

from sqlalchemy import Boolean, BigInteger, DateTime, Float, JSON, String, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from netshield.errors import StoreUnavailable
from netshield.store import DataStore, TABLE_ALERTS, TABLE_BLOCKS, TABLE_TRAFFIC, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


class NetworkAlertRow(Base):
    """Alert model."""
    __tablename__ = TABLE_ALERTS

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    source_ip: Mapped[str] = mapped_column(String, nullable=False, index=True)
    dest_ip: Mapped[str] = mapped_column(String, nullable=False)
    attack_type: Mapped[str] = mapped_column(String, nullable=False)
    severity: Mapped[str] = mapped_column(String, nullable=False)  # Low, Medium, High, Critical
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    packet_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class TrafficStatsRow(Base):
    """Cumulative traffic counters, one row per observation tick."""
    __tablename__ = TABLE_TRAFFIC

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    total_packets: Mapped[int] = mapped_column(BigInteger, default=0)
    normal_packets: Mapped[int] = mapped_column(BigInteger, default=0)
    malicious_packets: Mapped[int] = mapped_column(BigInteger, default=0)
    bytes_transferred: Mapped[int] = mapped_column(BigInteger, default=0)


class BlockedIPRow(Base):
    """Blocklist model."""
    __tablename__ = TABLE_BLOCKS

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ip_address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    block_reason: Mapped[str] = mapped_column(String, nullable=False)
    blocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    unblock_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)


TABLE_MODELS: Dict[str, Type[Base]] = {
    TABLE_ALERTS: NetworkAlertRow,
    TABLE_TRAFFIC: TrafficStatsRow,
    TABLE_BLOCKS: BlockedIPRow,
}


def _as_utc(value: Any) -> Any:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_dict(row: Base) -> Dict[str, Any]:
    return {c.key: _as_utc(getattr(row, c.key)) for c in row.__table__.columns}


def _column(model: Type[Base], name: str):
    if name not in model.__table__.columns:
        raise ValueError(f"{model.__tablename__} has no column {name!r}")
    return getattr(model, name)


class SqlStore(DataStore):
    """DataStore over any SQLAlchemy async URL (sqlite+aiosqlite, postgresql+asyncpg)."""

    def __init__(self, database_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout=timeout)
        engine_kwargs: Dict[str, Any] = {"echo": False}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=10, max_overflow=20)
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init_models(self) -> None:
        """Create tables that do not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to initialise database schema: {e}")
            raise StoreUnavailable(f"schema initialisation failed: {e}") from e

    async def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        model = TABLE_MODELS[table]
        columns = model.__table__.columns
        try:
            async with self.session_factory() as session:
                row = model(**{k: v for k, v in record.items() if k in columns})
                session.add(row)
                await session.commit()
                return _row_to_dict(row)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to insert into {table}: {e}")
            raise StoreUnavailable(f"insert into {table} failed") from e

    async def _query(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        model = TABLE_MODELS[table]
        stmt = select(model).where(*[_column(model, k) == v for k, v in filters.items()])
        if order_by:
            col = _column(model, order_by)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [_row_to_dict(row) for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to query {table}: {e}")
            raise StoreUnavailable(f"query on {table} failed") from e

    async def _update(self, table: str, record_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        model = TABLE_MODELS[table]
        try:
            async with self.session_factory() as session:
                row = await session.get(model, record_id)
                if row is None:
                    return None
                for key, value in patch.items():
                    _column(model, key)
                    setattr(row, key, value)
                await session.commit()
                return _row_to_dict(row)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to update {table} id={record_id}: {e}")
            raise StoreUnavailable(f"update on {table} failed") from e

    async def close(self) -> None:
        await super().close()
        await self.engine.dispose()

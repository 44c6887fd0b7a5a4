from typing import Optional, AsyncIterator
import contextlib
import time
from sqlalchemy import BigInteger, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine, AsyncEngine, AsyncConnection
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from telemetry_backend.config import settings
from telemetry_backend.constants import (
    DEFAULT_QUALITY,
    MAX_METRIC_LENGTH,
    MAX_NAME_LENGTH,
    MAX_ORIGIN_ID_LENGTH,
    MAX_QUALITY_LENGTH,
)


def now_ms() -> int:
    return int(time.time() * 1000)


class Base(DeclarativeBase):
    pass


class PointInfo(Base):
    """Descriptor of an individually addressable telemetry channel."""
    __tablename__ = "point_info"
    __table_args__ = (UniqueConstraint("system_id", "origin_id", "origin_sub_id", name="pi_system_point_unique"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    system_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    origin_id: Mapped[str] = mapped_column(String(MAX_ORIGIN_ID_LENGTH), nullable=False)
    origin_sub_id: Mapped[Optional[str]] = mapped_column(String(MAX_ORIGIN_ID_LENGTH), nullable=True)
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    metric_type: Mapped[str] = mapped_column(String(MAX_METRIC_LENGTH), nullable=False)  # 'power', 'energy', 'price'
    metric_unit: Mapped[str] = mapped_column(String(MAX_METRIC_LENGTH), nullable=False)  # 'W', 'Wh', 'c/kWh'
    transform: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)  # 'd' = lifetime counter

    def __repr__(self):
        return f"<PointInfo(id={self.id}, system={self.system_id}, origin={self.origin_id}.{self.origin_sub_id})>"


class PointReading(Base):
    """Raw reading as deposited by an ingestion adapter. Re-delivery overwrites value and quality."""
    __tablename__ = "point_readings"
    __table_args__ = (
        UniqueConstraint("point_id", "measurement_time", name="pr_point_time_unique"),
        Index("pr_system_time_idx", "system_id", "measurement_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    system_id: Mapped[int] = mapped_column(Integer, nullable=False)
    point_id: Mapped[int] = mapped_column(ForeignKey("point_info.id", ondelete="CASCADE"), nullable=False)
    session_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    measurement_time: Mapped[int] = mapped_column(BigInteger, nullable=False)  # ms, when the device recorded
    received_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)  # ms, when we fetched
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # None marks an error sample
    data_quality: Mapped[str] = mapped_column(String(MAX_QUALITY_LENGTH), nullable=False, default=DEFAULT_QUALITY)

    def __repr__(self):
        return f"<PointReading(point={self.point_id}, time={self.measurement_time}, value={self.value}, quality={self.data_quality})>"


class PointReadingAgg5m(Base):
    """Fixed-width interval aggregate, overwritten on recomputation."""
    __tablename__ = "point_readings_agg_5m"

    system_id: Mapped[int] = mapped_column(Integer, primary_key=True, nullable=False)
    point_id: Mapped[int] = mapped_column(ForeignKey("point_info.id", ondelete="CASCADE"), primary_key=True, nullable=False)
    interval_end: Mapped[int] = mapped_column(BigInteger, primary_key=True, nullable=False)  # ms

    # Null when every reading in the interval was an error
    avg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delta: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    sample_count: Mapped[int] = mapped_column(Integer, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    def __repr__(self):
        return f"<Agg5m(point={self.point_id}, interval_end={self.interval_end}, samples={self.sample_count}, errors={self.error_count})>"


class DatabaseSessionManager:
    def __init__(self):
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")
        return self._engine

    def init(self, host: str):
        self._engine = create_async_engine(host, echo=settings.DEBUG)
        self._sessionmaker = async_sessionmaker(autocommit=False, bind=self._engine, expire_on_commit=False)

    async def close(self):
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")

        async with self._engine.begin() as connection:
            try:
                yield connection
            except Exception:
                await connection.rollback()
                raise

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessionmaker is None:
            raise Exception("DatabaseSessionManager is not initialized")

        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # Used for testing
    async def create_all(self, connection: AsyncConnection):
        await connection.run_sync(Base.metadata.create_all)

    async def drop_all(self, connection: AsyncConnection):
        await connection.run_sync(Base.metadata.drop_all)

sessionmanager = DatabaseSessionManager()

"""SQLAlchemy storage backend for CaseForge."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy import DateTime, Integer, JSON, String, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .base import AuditStore, LedgerSnapshot, PersistenceGateway
from .codec import SECTIONS, dump_snapshot, parse_snapshot


class Base(DeclarativeBase):
    pass


class LedgerRecordTable(Base):
    """One row per ledger record, keyed by record type."""

    __tablename__ = "caseforge_records"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON)


class AuditTable(Base):
    __tablename__ = "caseforge_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    action: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON)


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo, future=True)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def gateway(self) -> "AsyncSQLAlchemyGateway":
        return AsyncSQLAlchemyGateway(self._session_factory)

    def audit_store(self) -> "AsyncSQLAlchemyAuditStore":
        return AsyncSQLAlchemyAuditStore(self._session_factory)


class AsyncSQLAlchemyGateway(PersistenceGateway):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self) -> LedgerSnapshot | None:
        async with self._session_factory() as session:
            stmt = select(LedgerRecordTable).order_by(
                LedgerRecordTable.kind, LedgerRecordTable.position
            )
            rows = (await session.execute(stmt)).scalars().all()
        if not rows:
            return None
        data: dict = {section: [] for section in SECTIONS}
        for row in rows:
            if row.kind == "meta":
                data["meta"] = dict(row.payload)
            else:
                data.setdefault(row.kind, []).append(dict(row.payload))
        return parse_snapshot(data)

    async def save(self, snapshot: LedgerSnapshot) -> None:
        data = dump_snapshot(snapshot)
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(LedgerRecordTable))
                for section in SECTIONS:
                    for position, payload in enumerate(data[section]):
                        session.add(
                            LedgerRecordTable(kind=section, position=position, payload=payload)
                        )
                session.add(LedgerRecordTable(kind="meta", position=0, payload=data["meta"]))


class AsyncSQLAlchemyAuditStore(AuditStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_entry(self, action: str, payload: dict) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditTable(
                    created_at=datetime.now(timezone.utc),
                    action=action,
                    payload=dict(payload),
                )
            )
            await session.commit()

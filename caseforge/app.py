"""Top level application object for CaseForge bots."""

from __future__ import annotations

import logging
from random import Random
from typing import Any

from .config import CaseForgeConfig
from .domain.catalog import CaseCatalog
from .domain.economy import EconomyService
from .domain.events import EventBus
from .domain.progression import ProgressionEngine
from .domain.promos import PromoLedger
from .domain.roller import RewardRoller
from .domain.store import AccountStore
from .domain.trades import TradeNegotiator
from .domain.wagers import WagerEngine
from .storage.base import AuditStore, PersistenceGateway
from .storage.memory import InMemoryAuditStore, InMemoryGateway
from .storage.sqlalchemy import AsyncSQLAlchemyStorage

logger = logging.getLogger(__name__)


class LedgerApp:
    """Central dependency container used by bots, admin tooling and scripts."""

    def __init__(
        self,
        config: CaseForgeConfig,
        *,
        gateway: PersistenceGateway | None = None,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
        rng: Random | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        self.gateway, self.audit_store = self._wire_storage(gateway, audit_store)

        self.store = AccountStore(
            self.gateway,
            economy=config.economy,
            progression=config.progression,
            flush_interval=config.storage.flush_interval_seconds,
        )
        self.roller = RewardRoller(self._rng, variation_chance=config.roll.variation_chance)
        self.progression = ProgressionEngine(
            self.store, config.progression, event_bus=self.event_bus
        )
        self.catalog = CaseCatalog(self.store, tolerance=config.roll.weight_tolerance)
        self.economy = EconomyService(
            self.store,
            self.roller,
            self.progression,
            config.economy,
            event_bus=self.event_bus,
        )
        self.trades = TradeNegotiator(self.store, event_bus=self.event_bus)
        self.wagers = WagerEngine(
            self.store, rng=self._rng, progression=self.progression, event_bus=self.event_bus
        )
        self.promos = PromoLedger(self.store, progression=self.progression, event_bus=self.event_bus)

    def _wire_storage(
        self,
        gateway: PersistenceGateway | None,
        audit_store: AuditStore | None,
    ) -> tuple[PersistenceGateway, AuditStore]:
        if gateway and audit_store:
            return gateway, audit_store

        backend = self.config.storage.backend
        if backend == "memory":
            return gateway or InMemoryGateway(), audit_store or InMemoryAuditStore()
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return gateway or storage.gateway(), audit_store or storage.audit_store()
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export a short summary of the current ledger for debugging."""
        return {
            "storage": self.config.storage.backend,
            "accounts": len(self.store.account_ids()),
            "cases": [case.case_id for case in self.store.list_cases()],
            "promo_codes": [promo.code for promo in self.store.list_promos()],
            "pending_writes": self.store.has_pending_writes,
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def start(self) -> None:
        """Create tables, load the persisted ledger and start the write-behind task."""
        await self.init_backend()
        await self.store.load()
        self.store.start()

    async def shutdown(self) -> None:
        """Flush pending writes and release backend resources."""
        await self.store.close()
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
        logger.info("CaseForge ledger shut down.")

"""Configuration models for CaseForge."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal


StorageBackend = Literal["memory", "sqlalchemy"]

_TRUTHY = {"1", "true", "yes"}


@dataclass(slots=True)
class StorageConfig:
    """Configure where the ledger snapshot is persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False
    flush_interval_seconds: float = 0.1

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./caseforge.db"
        return None


@dataclass(slots=True)
class AdminCommandConfig:
    """Allows renaming admin bot commands."""

    ban: str = "ban"
    unban: str = "unban"
    reset: str = "reset"
    set_balance: str = "setbalance"
    grant_item: str = "grantitem"
    create_promo: str = "promo_create"
    daily_all: str = "daily_all"


@dataclass(slots=True)
class AdminConfig:
    """Feature switches for admin tooling."""

    admin_ids: set[int] = field(default_factory=set)
    enable_audit_logs: bool = True
    commands: AdminCommandConfig = field(default_factory=AdminCommandConfig)


@dataclass(slots=True)
class EconomyConfig:
    """Balances and daily grants."""

    starting_balance: int = 1000
    daily_grant_amount: int = 1000
    daily_grant_timezone: str = "Europe/Kyiv"
    daily_grant_hour: int = 0
    daily_check_interval_seconds: int = 60


@dataclass(slots=True)
class RollConfig:
    """Rules for case rolls and catalog validation."""

    variation_chance: float = 10.0
    weight_tolerance: float = 0.1


@dataclass(slots=True)
class ProgressionConfig:
    xp_per_level: int = 100
    milestone: int = 10_000
    early_milestone_xp: int = 20
    early_milestone_count: int = 5
    late_milestone_xp: int = 5
    base_max_case_openings: int = 1


@dataclass(slots=True)
class CaseForgeConfig:
    """Top-level configuration container."""

    bot_token: str = ""
    storage: StorageConfig = field(default_factory=StorageConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    economy: EconomyConfig = field(default_factory=EconomyConfig)
    roll: RollConfig = field(default_factory=RollConfig)
    progression: ProgressionConfig = field(default_factory=ProgressionConfig)
    public_base_url: str = "http://localhost:5051"
    rng_seed: int | None = None

    @classmethod
    def from_env(cls) -> "CaseForgeConfig":
        """Create config from environment variables prefixed with CASEFORGE_."""
        prefix = "CASEFORGE_"

        def flag(name: str, default: str) -> bool:
            return os.getenv(f"{prefix}{name}", default).lower() in _TRUTHY

        admin_ids = {
            int(_id.strip())
            for _id in os.getenv(f"{prefix}ADMIN_IDS", "").split(",")
            if _id.strip()
        }

        storage = StorageConfig(
            backend=_parse_backend(os.getenv(f"{prefix}STORAGE_BACKEND", "memory")),
            dsn=os.getenv(f"{prefix}STORAGE_DSN"),
            echo_sql=flag("STORAGE_ECHO_SQL", "false"),
            flush_interval_seconds=float(os.getenv(f"{prefix}STORAGE_FLUSH_INTERVAL", "0.1")),
        )

        admin = AdminConfig(
            admin_ids=admin_ids,
            enable_audit_logs=flag("ADMIN_ENABLE_AUDIT_LOGS", "true"),
            commands=AdminCommandConfig(
                ban=os.getenv(f"{prefix}ADMIN_CMD_BAN", "ban") or "ban",
                unban=os.getenv(f"{prefix}ADMIN_CMD_UNBAN", "unban") or "unban",
                reset=os.getenv(f"{prefix}ADMIN_CMD_RESET", "reset") or "reset",
                set_balance=os.getenv(f"{prefix}ADMIN_CMD_SET_BALANCE", "setbalance")
                or "setbalance",
                grant_item=os.getenv(f"{prefix}ADMIN_CMD_GRANT_ITEM", "grantitem") or "grantitem",
                create_promo=os.getenv(f"{prefix}ADMIN_CMD_CREATE_PROMO", "promo_create")
                or "promo_create",
                daily_all=os.getenv(f"{prefix}ADMIN_CMD_DAILY_ALL", "daily_all") or "daily_all",
            ),
        )

        economy = EconomyConfig(
            starting_balance=int(os.getenv(f"{prefix}STARTING_BALANCE", "1000")),
            daily_grant_amount=int(os.getenv(f"{prefix}DAILY_GRANT_AMOUNT", "1000")),
            daily_grant_timezone=os.getenv(f"{prefix}DAILY_GRANT_TZ", "Europe/Kyiv"),
            daily_grant_hour=int(os.getenv(f"{prefix}DAILY_GRANT_HOUR", "0")),
            daily_check_interval_seconds=int(os.getenv(f"{prefix}DAILY_CHECK_INTERVAL", "60")),
        )
        if economy.starting_balance < 0:
            raise ValueError("CASEFORGE_STARTING_BALANCE cannot be negative")
        if not 0 <= economy.daily_grant_hour <= 23:
            raise ValueError("CASEFORGE_DAILY_GRANT_HOUR must be between 0 and 23")

        roll = RollConfig(
            variation_chance=float(os.getenv(f"{prefix}VARIATION_CHANCE", "10")),
            weight_tolerance=float(os.getenv(f"{prefix}WEIGHT_TOLERANCE", "0.1")),
        )
        if not 0 <= roll.variation_chance <= 100:
            raise ValueError("CASEFORGE_VARIATION_CHANCE must be between 0 and 100")

        return cls(
            bot_token=os.getenv(f"{prefix}BOT_TOKEN", ""),
            storage=storage,
            admin=admin,
            economy=economy,
            roll=roll,
            progression=ProgressionConfig(
                xp_per_level=int(os.getenv(f"{prefix}XP_PER_LEVEL", "100")),
                milestone=int(os.getenv(f"{prefix}MILESTONE", "10000")),
            ),
            public_base_url=os.getenv(f"{prefix}PUBLIC_BASE_URL", "http://localhost:5051"),
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
        )


def _parse_backend(raw: str) -> StorageBackend:
    value = raw.strip().lower()
    if value not in ("memory", "sqlalchemy"):
        raise ValueError(f"Unsupported CASEFORGE_STORAGE_BACKEND '{raw}'")
    return value  # type: ignore[return-value]

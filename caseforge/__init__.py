"""CaseForge economy ledger public API."""

from . import domain
from .app import LedgerApp
from .config import CaseForgeConfig

__all__ = [
    "domain",
    "LedgerApp",
    "CaseForgeConfig",
]

"""Testing utilities for CaseForge."""

from .factory import AccountFactory, CaseFactory, split_weights
from .fixtures import ScriptedRandom, app_fixture, loaded_app, memory_app
from .test_client import TestClient

__all__ = [
    "AccountFactory",
    "CaseFactory",
    "split_weights",
    "ScriptedRandom",
    "app_fixture",
    "loaded_app",
    "memory_app",
    "TestClient",
]

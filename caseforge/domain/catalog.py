"""Case catalog management on top of the ledger store."""

from __future__ import annotations

import copy
import logging
from typing import Iterable

from .cases import CaseDefinition, catalog_weight_errors
from .exceptions import AlreadyExists, ValidationError
from .store import CATALOG_KEY, AccountStore

logger = logging.getLogger(__name__)


class CaseCatalog:
    """Validated create/update/import operations for case definitions."""

    def __init__(self, store: AccountStore, *, tolerance: float = 0.1) -> None:
        self._store = store
        self._tolerance = tolerance

    def get(self, case_id: str) -> CaseDefinition:
        return self._store.get_case(case_id)

    def all(self, *, include_disabled: bool = True) -> list[CaseDefinition]:
        cases = self._store.list_cases()
        if include_disabled:
            return cases
        return [case for case in cases if case.enabled]

    def validate(self, cases: Iterable[CaseDefinition]) -> None:
        errors = catalog_weight_errors(list(cases), tolerance=self._tolerance)
        if errors:
            logger.warning("Rejected catalog change: %s", "; ".join(errors))
            raise ValidationError(_format_errors("Catalog validation failed", errors), errors=errors)

    async def create(self, case: CaseDefinition) -> CaseDefinition:
        self.validate([case])
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            if any(existing.case_id == case.case_id for existing in self._store.list_cases()):
                raise AlreadyExists(f"Case {case.case_id} already exists")
            tx.put_case(copy.deepcopy(case))
        return case

    async def update(self, case: CaseDefinition) -> CaseDefinition:
        self.validate([case])
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            self._store.get_case(case.case_id)
            tx.put_case(copy.deepcopy(case))
        return case

    async def set_enabled(self, case_id: str, enabled: bool) -> CaseDefinition:
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            case = self._store.get_case(case_id)
            case.enabled = enabled
            tx.put_case(case)
        return copy.deepcopy(case)

    async def delete(self, case_id: str) -> None:
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            self._store.get_case(case_id)
            tx.delete_case(case_id)

    async def replace_all(self, cases: Iterable[CaseDefinition]) -> int:
        incoming = list(cases)
        if not incoming:
            raise ValidationError("Catalog must contain at least one case", errors=[])
        self.validate(incoming)
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            tx.replace_cases(copy.deepcopy(incoming))
        logger.info("Case catalog replaced with %s cases.", len(incoming))
        return len(incoming)

    async def upsert(self, cases: Iterable[CaseDefinition]) -> int:
        incoming = list(cases)
        self.validate(incoming)
        async with self._store.transaction(keys=[CATALOG_KEY]) as tx:
            for case in incoming:
                tx.put_case(copy.deepcopy(case))
        logger.info("Upserted %s cases into the catalog.", len(incoming))
        return len(incoming)


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"

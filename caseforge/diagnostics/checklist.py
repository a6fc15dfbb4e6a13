"""Automated checks to highlight balancing issues."""

from __future__ import annotations

from dataclasses import dataclass

from ..app import LedgerApp
from ..domain.cases import case_weight_errors
from .economy_simulator import expected_value


@dataclass(slots=True)
class ChecklistIssue:
    severity: str
    message: str


def run_checklist(app: LedgerApp) -> list[ChecklistIssue]:
    issues: list[ChecklistIssue] = []
    cases = app.store.list_cases()
    if not cases:
        issues.append(ChecklistIssue("error", "В каталоге нет ни одного кейса."))
    elif not any(case.enabled for case in cases):
        issues.append(ChecklistIssue("error", "Все кейсы отключены."))

    tolerance = app.config.roll.weight_tolerance
    for case in cases:
        for error in case_weight_errors(case, tolerance=tolerance):
            issues.append(ChecklistIssue("error", error))
        if not case.enabled:
            issues.append(ChecklistIssue("warning", f"Кейс {case.case_id} отключён."))
        ev = expected_value(case, variation_chance=app.config.roll.variation_chance)
        if case.price and ev > case.price:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Ожидаемая стоимость кейса {case.case_id} ({ev:.1f}) выше цены {case.price}.",
                )
            )

    previous = app.config.progression.base_max_case_openings
    for reward in app.store.list_level_rewards():
        if reward.max_case_openings < previous:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Награда уровня {reward.level} уменьшает лимит кейсов до {reward.max_case_openings}.",
                )
            )
        previous = max(previous, reward.max_case_openings)

    return issues

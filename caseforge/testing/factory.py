"""Factories for tests and prototyping."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Iterable

from faker import Faker

from ..domain.cases import CaseDefinition, ItemDefinition, RarityTier, Variation, WonItem
from ..storage.base import Account


def split_weights(count: int, total: float = 100.0) -> list[float]:
    """Even weights summing exactly to ``total``; the remainder lands on the last entry."""
    share = round(total / count, 2)
    weights = [share] * (count - 1)
    weights.append(round(total - sum(weights), 2))
    return weights


@dataclass(slots=True)
class CaseFactory:
    faker: Faker = field(default_factory=Faker)
    rng: Random = field(default_factory=Random)

    def build_item(self, drop_weight: float, *, variations: int = 0) -> ItemDefinition:
        item_id = f"item_{self.faker.unique.lexify(text='??????')}"
        base_value = self.rng.randint(10, 500)
        return ItemDefinition(
            item_id=item_id,
            name=self.faker.word().title(),
            rarity=self.rng.choice(list(RarityTier)).value,
            base_value=base_value,
            drop_weight=drop_weight,
            variations=tuple(
                Variation(
                    name=self.faker.color_name(),
                    drop_weight=weight,
                    price=base_value * self.rng.randint(2, 5),
                )
                for weight in (split_weights(variations) if variations else ())
            ),
        )

    def build(
        self,
        *,
        items: int = 5,
        price: int = 100,
        variations: int = 0,
        case_id: str | None = None,
    ) -> CaseDefinition:
        return CaseDefinition(
            case_id=case_id or f"case_{self.faker.unique.lexify(text='????')}",
            name=self.faker.catch_phrase(),
            price=price,
            items=tuple(
                self.build_item(weight, variations=variations) for weight in split_weights(items)
            ),
        )

    def won_item(self, case: CaseDefinition, index: int = 0) -> WonItem:
        item = case.items[index]
        return WonItem(
            item_id=item.item_id,
            name=item.name,
            rarity=item.rarity,
            value=item.base_value,
            case_id=case.case_id,
        )

    def batch(self, count: int, **kwargs) -> Iterable[CaseDefinition]:
        for _ in range(count):
            yield self.build(**kwargs)


@dataclass(slots=True)
class AccountFactory:
    faker: Faker = field(default_factory=Faker)

    def build(self, account_id: int | None = None, *, balance: int = 1000) -> Account:
        return Account(
            account_id=account_id or self.faker.unique.random_int(min=1, max=10**9),
            display_name=self.faker.name(),
            username=self.faker.unique.user_name(),
            balance=balance,
        )

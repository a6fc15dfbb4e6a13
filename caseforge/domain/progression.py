"""XP, levels and earnings milestones."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from ..config import ProgressionConfig
from ..storage.base import Account, LevelReward
from .events import LEVEL_UP, EventBus
from .exceptions import InvalidAmount, NotFound
from .store import SETTINGS_KEY, AccountStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProgressionResult:
    xp_gained: int = 0
    levels_gained: list[int] = field(default_factory=list)
    rewards: list[LevelReward] = field(default_factory=list)
    milestones_crossed: int = 0

    @property
    def leveled_up(self) -> bool:
        return bool(self.levels_gained)

    def merge(self, other: "ProgressionResult") -> "ProgressionResult":
        return ProgressionResult(
            xp_gained=self.xp_gained + other.xp_gained,
            levels_gained=[*self.levels_gained, *other.levels_gained],
            rewards=[*self.rewards, *other.rewards],
            milestones_crossed=self.milestones_crossed + other.milestones_crossed,
        )


class ProgressionEngine:
    """Turn lifetime earnings into XP and XP into levels and unlocks.

    The ``apply_*`` methods mutate a working account inside a caller's
    transaction; the async methods open their own transaction.
    Progression never touches balances, so coin transfers stay zero-sum.
    """

    def __init__(
        self,
        store: AccountStore,
        config: ProgressionConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._config = config or ProgressionConfig()
        self._events = event_bus or EventBus()

    @property
    def config(self) -> ProgressionConfig:
        return self._config

    def milestone_xp(self, milestone_number: int) -> int:
        if milestone_number <= self._config.early_milestone_count:
            return self._config.early_milestone_xp
        return self._config.late_milestone_xp

    def apply_xp(self, account: Account, amount: int) -> ProgressionResult:
        if amount < 0:
            raise InvalidAmount("XP amount cannot be negative")
        result = ProgressionResult(xp_gained=amount)
        account.xp += amount
        per_level = self._config.xp_per_level
        while account.xp >= per_level:
            account.xp -= per_level
            account.level += 1
            result.levels_gained.append(account.level)
            reward = self._store.level_reward(account.level)
            if reward is None:
                continue
            result.rewards.append(reward)
            account.max_case_openings = max(account.max_case_openings, reward.max_case_openings)
        return result

    def apply_earnings(self, account: Account, amount: int) -> ProgressionResult:
        if amount <= 0:
            return ProgressionResult()
        account.lifetime_earnings += amount
        reached = account.lifetime_earnings // self._config.milestone
        xp = sum(
            self.milestone_xp(number)
            for number in range(account.milestones_reached + 1, reached + 1)
        )
        crossed = max(0, reached - account.milestones_reached)
        account.milestones_reached = max(account.milestones_reached, reached)
        result = self.apply_xp(account, xp)
        result.milestones_crossed = crossed
        return result

    async def add_xp(self, account_id: int, amount: int) -> ProgressionResult:
        async with self._store.transaction(account_id) as tx:
            account = tx.account(account_id)
            result = self.apply_xp(account, amount)
        await self.announce(account_id, result)
        return result

    async def record_earnings(self, account_id: int, amount: int) -> ProgressionResult:
        async with self._store.transaction(account_id) as tx:
            result = self.apply_earnings(tx.account(account_id), amount)
        await self.announce(account_id, result)
        return result

    async def announce(self, account_id: int, result: ProgressionResult) -> None:
        if not result.leveled_up:
            return
        logger.info("Account %s reached level %s.", account_id, result.levels_gained[-1])
        await self._events.publish(
            LEVEL_UP,
            {
                "account_id": account_id,
                "levels": list(result.levels_gained),
                "rewards": [reward.level for reward in result.rewards],
            },
        )

    async def set_level_reward(self, reward: LevelReward) -> LevelReward:
        if reward.level < 2:
            raise InvalidAmount("Level rewards start at level 2")
        if reward.max_case_openings < 1:
            raise InvalidAmount("maxCaseOpenings must be at least 1")
        async with self._store.transaction(keys=[SETTINGS_KEY]) as tx:
            tx.put_level_reward(copy.deepcopy(reward))
        return reward

    async def remove_level_reward(self, level: int) -> None:
        if self._store.level_reward(level) is None:
            raise NotFound(f"No reward configured for level {level}")
        async with self._store.transaction(keys=[SETTINGS_KEY]) as tx:
            tx.delete_level_reward(level)

    def level_rewards(self) -> list[LevelReward]:
        return self._store.list_level_rewards()

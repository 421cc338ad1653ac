"""장착 아티팩트 경험치/레벨 진행"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .enums import XPSource
from .models import ArtifactInstance, PlayerProfile
from .registry import ArtifactRegistry

logger = logging.getLogger(__name__)

MAX_LEVEL = 10

# 레벨 n 도달에 필요한 누적 경험치
XP_FOR_LEVEL: tuple[int, ...] = tuple(level * 50_000_000 for level in range(MAX_LEVEL + 1))

EARNS_XP_DESCRIPTION = "Slaying enemies and monsters found anywhere."

MSG_GAINED_LEVEL = "Your {0} has gained a level!"
MSG_GAINED_XP = "Your {0} has gained experience."
MSG_GUILD_BONUS = "Your {0} gains additional experience due to your guild's buff!"


@dataclass
class ExperienceResult:
    gained: int = 0
    levels: list[int] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def leveled_up(self) -> bool:
        return bool(self.levels)

    @property
    def new_level(self) -> Optional[int]:
        return self.levels[-1] if self.levels else None


def total_experience(base: int, camp: int = 0, group: int = 0, outpost: int = 0) -> int:
    return base + camp + group + outpost


def current_level(experience: int) -> int:
    for level in range(MAX_LEVEL, -1, -1):
        if experience >= XP_FOR_LEVEL[level]:
            return level
    return 0


def progress_percent(instance: ArtifactInstance) -> int:
    """다음 레벨까지의 진행률 (%). 최대 레벨이면 0."""
    level = current_level(instance.experience)
    if level >= MAX_LEVEL:
        return 0
    gained = instance.experience - XP_FOR_LEVEL[level]
    needed = XP_FOR_LEVEL[level + 1] - XP_FOR_LEVEL[level]
    return int(gained * 100 / needed)


class ExperienceProgression:
    """처치 경험치 → 아티팩트 경험치.

    획득량 = (처치 경험치 [+ 길드 보너스]) * 아티팩트 xp_rate / 전역 분모
    """

    def __init__(
        self,
        registry: ArtifactRegistry,
        xp_rate_denominator: int = 350,
        guild_bonus_percent: int = 5,
    ) -> None:
        if xp_rate_denominator <= 0:
            raise ValueError("xp_rate_denominator must be positive")
        self._registry = registry
        self._denominator = xp_rate_denominator
        self._guild_bonus_percent = guild_bonus_percent

    @staticmethod
    def earns_xp_description() -> str:
        return EARNS_XP_DESCRIPTION

    def grant_experience(
        self,
        instance: ArtifactInstance,
        base_amount: int,
        source: XPSource,
        *,
        holder: Optional[PlayerProfile] = None,
        rate_override: Optional[int] = None,
    ) -> ExperienceResult:
        result = ExperienceResult()

        if source not in (XPSource.PLAYER, XPSource.NPC):
            return result
        if holder is not None and holder.is_praying:
            return result

        old_xp = instance.experience

        # 이미 최대치면 경험치는 더하지 않고 밀린 레벨만 하나씩 올린다
        if old_xp >= XP_FOR_LEVEL[MAX_LEVEL]:
            while instance.level < MAX_LEVEL:
                self._level_up(instance, instance.level + 1, result)
            return result

        if rate_override is not None:
            xp_rate = rate_override
        else:
            art = self._registry.get(instance.artifact_id)
            if art is None:
                logger.warning("XP for unknown artifact %r ignored", instance.artifact_id)
                return result
            xp_rate = art.xp_rate

        amount = max(0, base_amount)
        if holder is not None and holder.guild_artifact_xp_buff:
            amount += int(amount * self._guild_bonus_percent * 0.01)
            result.messages.append(MSG_GUILD_BONUS.format(instance.name))

        gained = max(0, amount * xp_rate // self._denominator)
        new_xp = old_xp + gained
        instance.experience = new_xp
        result.gained = gained
        result.messages.append(MSG_GAINED_XP.format(instance.name))

        for level in range(1, MAX_LEVEL + 1):
            if new_xp < XP_FOR_LEVEL[level]:
                break
            if old_xp >= XP_FOR_LEVEL[level]:
                continue
            self._level_up(instance, level, result)

        if result.leveled_up:
            logger.info(
                "%s reached level %d (xp %d)", instance.name, instance.level, new_xp
            )
        return result

    @staticmethod
    def _level_up(instance: ArtifactInstance, level: int, result: ExperienceResult) -> None:
        instance.level = level
        result.levels.append(level)
        result.messages.append(MSG_GAINED_LEVEL.format(instance.name))

"""인카운터 크레딧 라우팅

보스 사망 → 반경 내 플레이어에게 해당 아티팩트의 인카운터 크레딧.
토큰 아이템(definition.credit)을 전달해도 같은 크레딧이 부여된다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .handles import QuestHandleRegistry
from .registry import ArtifactRegistry

logger = logging.getLogger(__name__)

# (player_id, artifact_id) → 받을 자격 여부
CanReceive = Callable[[str, str], bool]


def _always(player_id: str, artifact_id: str) -> bool:
    return True


@dataclass(frozen=True)
class CreditMatcher:
    """NPC 이름 매처. fuzzy면 부분 문자열, 아니면 정확히 일치 (대소문자 무시)."""

    artifact_id: str
    names: tuple[str, ...] = ()
    fuzzy: bool = False
    region: Optional[int] = None

    def is_match(self, npc_name: Optional[str], region: int) -> bool:
        if self.region is not None and self.region != region:
            return False
        lowered = (npc_name or "").lower()
        for name in self.names:
            if not name or not name.strip():
                continue
            if self.fuzzy:
                if name.lower() in lowered:
                    return True
            elif lowered == name.lower():
                return True
        return False


class CreditRouter:
    """순서 있는 매처 목록. 첫 번째 일치가 이긴다."""

    def __init__(self, matchers: Iterable[CreditMatcher] = ()) -> None:
        self._matchers: list[CreditMatcher] = list(matchers)

    @property
    def matchers(self) -> list[CreditMatcher]:
        return list(self._matchers)

    def add(self, matcher: CreditMatcher) -> None:
        if matcher not in self._matchers:
            self._matchers.append(matcher)

    def resolve(self, npc_name: Optional[str], region: int = 0) -> Optional[str]:
        for matcher in self._matchers:
            if matcher.is_match(npc_name, region):
                return matcher.artifact_id
        return None


def grant_artifact_credit(
    registry: ArtifactRegistry,
    handles: QuestHandleRegistry,
    player_id: str,
    artifact_id: Optional[str],
    can_receive: CanReceive = _always,
) -> bool:
    """인카운터 크레딧 부여. 이미 인카운터나 퀘스트를 끝냈으면 아무것도 하지 않는다."""
    if not player_id or not artifact_id:
        return False
    if not can_receive(player_id, artifact_id):
        return False
    if registry.get(artifact_id) is None:
        logger.warning("Credit for unknown artifact %r ignored", artifact_id)
        return False

    encounter = handles.encounter_for(artifact_id)
    if encounter is None:
        logger.warning("No encounter handle registered for %s", artifact_id)
        return False
    quest = handles.quest_for(artifact_id)

    if encounter.is_finished_by(player_id) > 0:
        return False
    if quest is not None and quest.is_finished_by(player_id) > 0:
        return False

    encounter.force_complete(player_id)
    logger.info("Encounter credit for %s granted to %s", artifact_id, player_id)
    return True


def grant_bounty_credit(
    registry: ArtifactRegistry,
    handles: QuestHandleRegistry,
    player_id: str,
    token_name: Optional[str],
    can_receive: CanReceive = _always,
) -> bool:
    """크레딧 토큰 이름 → 해당 아티팩트 크레딧."""
    if not token_name:
        return False
    for art in registry.get_all():
        if art.credit and art.credit == token_name:
            return grant_artifact_credit(
                registry, handles, player_id, art.artifact_id, can_receive
            )
    return False


def has_encounter_credit(
    handles: QuestHandleRegistry, player_id: str, artifact_id: str
) -> bool:
    """턴인 전제 조건. 인카운터 핸들이 없는 아티팩트는 크레딧이 필요 없다."""
    encounter = handles.encounter_for(artifact_id)
    if encounter is None:
        return True
    return encounter.is_finished_by(player_id) > 0

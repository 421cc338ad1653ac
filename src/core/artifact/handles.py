"""artifact_id → 인카운터/퀘스트 핸들 등록 테이블

핸들은 퀘스트 프레임워크 초기화 시점에 명시적으로 등록된다.
코어는 타입 탐색을 하지 않는다.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .ports import QuestHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactHandles:
    encounter: Optional[QuestHandle] = None
    quest: Optional[QuestHandle] = None


class QuestHandleRegistry:
    def __init__(self) -> None:
        self._handles: dict[str, ArtifactHandles] = {}
        self._lock = threading.Lock()

    def register(
        self,
        artifact_id: str,
        encounter: Optional[QuestHandle] = None,
        quest: Optional[QuestHandle] = None,
    ) -> None:
        with self._lock:
            if artifact_id in self._handles:
                logger.warning("Overwriting quest handles for %s", artifact_id)
            self._handles[artifact_id] = ArtifactHandles(encounter, quest)

    def encounter_for(self, artifact_id: str) -> Optional[QuestHandle]:
        entry = self._handles.get(artifact_id)
        return entry.encounter if entry else None

    def quest_for(self, artifact_id: str) -> Optional[QuestHandle]:
        entry = self._handles.get(artifact_id)
        return entry.quest if entry else None

    def count(self) -> int:
        return len(self._handles)

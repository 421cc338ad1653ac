"""SQL 백엔드 퀘스트/인카운터 핸들 + 등록

아티팩트 정의의 encounter_id / quest_id 마다 핸들 하나.
로드 시점에 명시적으로 QuestHandleRegistry에 등록한다.
"""

from sqlalchemy.orm import Session

from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.registry import ArtifactRegistry
from src.core.logging import get_logger
from src.db.models import QuestProgressModel

logger = get_logger(__name__)

STATUS_ACTIVE = "active"
STATUS_FINISHED = "finished"


class SqlQuestHandle:
    """quest_progress 테이블의 (player, quest_id) 행 하나를 다룬다."""

    def __init__(self, db: Session, quest_id: str):
        self._db = db
        self.quest_id = quest_id

    def _row(self, player_id: str) -> QuestProgressModel | None:
        return self._db.get(QuestProgressModel, (player_id, self.quest_id))

    def is_finished_by(self, player_id: str) -> int:
        row = self._row(player_id)
        return row.finished_count if row else 0

    def is_active_for(self, player_id: str) -> bool:
        row = self._row(player_id)
        return row is not None and row.status == STATUS_ACTIVE

    def start(self, player_id: str) -> None:
        row = self._row(player_id)
        if row is None:
            row = QuestProgressModel(
                player_id=player_id,
                quest_id=self.quest_id,
                status=STATUS_ACTIVE,
                finished_count=0,
            )
            self._db.add(row)
        else:
            row.status = STATUS_ACTIVE
        self._db.commit()

    def force_complete(self, player_id: str) -> None:
        row = self._row(player_id)
        if row is None:
            row = QuestProgressModel(
                player_id=player_id, quest_id=self.quest_id, finished_count=0
            )
            self._db.add(row)
        row.status = STATUS_FINISHED
        row.finished_count = (row.finished_count or 0) + 1
        self._db.commit()
        logger.debug("Quest %s completed for %s", self.quest_id, player_id)


def register_artifact_handles(
    db: Session, registry: ArtifactRegistry, handles: QuestHandleRegistry
) -> int:
    """레지스트리의 모든 아티팩트에 대해 핸들 등록. 반환: 등록 수."""
    count = 0
    for art in registry.get_all():
        encounter = SqlQuestHandle(db, art.encounter_id) if art.encounter_id else None
        quest = SqlQuestHandle(db, art.quest_id) if art.quest_id else None
        if encounter is None and quest is None:
            continue
        handles.register(art.artifact_id, encounter=encounter, quest=quest)
        count += 1
    logger.info("Registered quest handles for %d artifacts", count)
    return count

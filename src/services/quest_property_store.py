"""SQL 백엔드 퀘스트 속성 저장소 — QuestPropertyStore 포트 구현"""

from sqlalchemy.orm import Session

from src.db.models import QuestPropertyModel


class SqlQuestPropertyStore:
    def __init__(self, db: Session):
        self._db = db

    def get(self, player_id: str, session_key: str, key: str) -> str | None:
        row = self._db.get(QuestPropertyModel, (player_id, session_key, key))
        return row.value if row else None

    def set(self, player_id: str, session_key: str, key: str, value: str) -> None:
        row = self._db.get(QuestPropertyModel, (player_id, session_key, key))
        if row is None:
            self._db.add(
                QuestPropertyModel(
                    player_id=player_id, session_key=session_key, key=key, value=value
                )
            )
        else:
            row.value = value
        self._db.commit()

    def remove(self, player_id: str, session_key: str, key: str) -> None:
        row = self._db.get(QuestPropertyModel, (player_id, session_key, key))
        if row is not None:
            self._db.delete(row)
            self._db.commit()

    def delete_session(self, player_id: str, session_key: str) -> None:
        self._db.query(QuestPropertyModel).filter(
            QuestPropertyModel.player_id == player_id,
            QuestPropertyModel.session_key == session_key,
        ).delete()
        self._db.commit()

"""외부 협력자 인터페이스 — 코어는 구현을 모른다.

인벤토리, 퀘스트 속성 저장소, 퀘스트/인카운터 핸들은 호출자가 주입한다.
"""

from __future__ import annotations

from typing import Optional, Protocol

from .models import ArtifactDefinition, ArtifactLevelBonus, ArtifactVersion, InventoryItem, ItemTemplate


class Inventory(Protocol):
    def items(self) -> list[InventoryItem]: ...

    def find_by_slot(self, slot: int) -> Optional[InventoryItem]: ...

    def remove_item(self, item: InventoryItem) -> bool: ...

    def receive_item(
        self, template: ItemTemplate, *, experience: int = 0, level: int = 0
    ) -> bool:
        """False = 공간 부족"""
        ...


class QuestPropertyStore(Protocol):
    """(player, session) 단위 key/value 문자열 저장소"""

    def get(self, player_id: str, session_key: str, key: str) -> Optional[str]: ...

    def set(self, player_id: str, session_key: str, key: str, value: str) -> None: ...

    def remove(self, player_id: str, session_key: str, key: str) -> None: ...

    def delete_session(self, player_id: str, session_key: str) -> None: ...


class QuestHandle(Protocol):
    def is_finished_by(self, player_id: str) -> int: ...

    def is_active_for(self, player_id: str) -> bool: ...

    def start(self, player_id: str) -> None: ...

    def force_complete(self, player_id: str) -> None: ...


class ArtifactDataSource(Protocol):
    """레지스트리가 읽는 평면 컬렉션들"""

    def load_artifacts(self) -> list[ArtifactDefinition]: ...

    def load_versions(self) -> list[ArtifactVersion]: ...

    def load_bonuses(self) -> list[ArtifactLevelBonus]: ...

    def load_templates(self) -> list[ItemTemplate]: ...

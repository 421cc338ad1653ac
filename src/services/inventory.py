"""SQL 백엔드 인벤토리 — Inventory 포트 구현

슬롯 0..capacity-1 중 빈 칸에 아이템을 넣는다.
"""

import uuid

from sqlalchemy.orm import Session

from src.core.artifact.enums import ObjectType
from src.core.artifact.models import InventoryItem, ItemTemplate, ScrollBlueprint
from src.core.artifact.registry import ArtifactRegistry
from src.core.logging import get_logger
from src.db.models import InventoryItemModel

logger = get_logger(__name__)


class SqlInventory:
    """플레이어 한 명의 배낭"""

    def __init__(
        self,
        db: Session,
        player_id: str,
        capacity: int,
        registry: ArtifactRegistry | None = None,
    ):
        self._db = db
        self._player_id = player_id
        self._capacity = capacity
        self._registry = registry

    @property
    def player_id(self) -> str:
        return self._player_id

    # === 조회 ===

    def items(self) -> list[InventoryItem]:
        rows = (
            self._db.query(InventoryItemModel)
            .filter(InventoryItemModel.player_id == self._player_id)
            .order_by(InventoryItemModel.slot)
            .all()
        )
        return [self._to_core(r) for r in rows]

    def find_by_slot(self, slot: int) -> InventoryItem | None:
        row = (
            self._db.query(InventoryItemModel)
            .filter(
                InventoryItemModel.player_id == self._player_id,
                InventoryItemModel.slot == slot,
            )
            .first()
        )
        return self._to_core(row) if row else None

    def get(self, object_id: str) -> InventoryItem | None:
        row = self._get_row(object_id)
        return self._to_core(row) if row else None

    def equipped_artifacts(self) -> list[InventoryItemModel]:
        """장착 중인 아티팩트 행 (경험치 갱신용)"""
        return (
            self._db.query(InventoryItemModel)
            .filter(
                InventoryItemModel.player_id == self._player_id,
                InventoryItemModel.equipped.is_(True),
                InventoryItemModel.artifact_id.is_not(None),
                InventoryItemModel.object_type == ObjectType.ARTIFACT.value,
            )
            .all()
        )

    # === 변경 ===

    def remove_item(self, item: InventoryItem) -> bool:
        row = self._get_row(item.object_id)
        if row is None:
            logger.warning(
                "Remove failed: %s not in inventory of %s", item.object_id, self._player_id
            )
            return False
        self._db.delete(row)
        self._db.commit()
        return True

    def receive_item(
        self, template: ItemTemplate, *, experience: int = 0, level: int = 0
    ) -> bool:
        artifact_id = (
            self._registry.get_artifact_id_from_item_id(template.template_id)
            if self._registry is not None
            else None
        )
        return self._add(
            template_id=template.template_id,
            name=template.name,
            object_type=ObjectType.ARTIFACT if artifact_id else ObjectType.GENERIC,
            model=template.model,
            price=template.price,
            artifact_id=artifact_id,
            experience=experience,
            artifact_level=level,
        )

    def receive_scroll(self, blueprint: ScrollBlueprint) -> bool:
        return self._add(
            template_id=blueprint.template_id,
            name=blueprint.name,
            object_type=ObjectType.MAGICAL,
            model=blueprint.model,
            price=blueprint.price,
            artifact_id=blueprint.artifact_id,
        )

    def _add(self, **fields) -> bool:
        slot = self._free_slot()
        if slot is None:
            return False
        row = InventoryItemModel(
            object_id=str(uuid.uuid4()),
            player_id=self._player_id,
            slot=slot,
            **{k: (v.value if isinstance(v, ObjectType) else v) for k, v in fields.items()},
        )
        self._db.add(row)
        self._db.commit()
        logger.debug("%s received %s in slot %d", self._player_id, row.name, slot)
        return True

    def _free_slot(self) -> int | None:
        used = {
            slot
            for (slot,) in self._db.query(InventoryItemModel.slot)
            .filter(InventoryItemModel.player_id == self._player_id)
            .all()
        }
        for slot in range(self._capacity):
            if slot not in used:
                return slot
        return None

    def _get_row(self, object_id: str) -> InventoryItemModel | None:
        return (
            self._db.query(InventoryItemModel)
            .filter(
                InventoryItemModel.player_id == self._player_id,
                InventoryItemModel.object_id == object_id,
            )
            .first()
        )

    @staticmethod
    def _to_core(row: InventoryItemModel) -> InventoryItem:
        return InventoryItem(
            object_id=row.object_id,
            template_id=row.template_id,
            name=row.name,
            object_type=ObjectType(row.object_type),
            slot=row.slot,
            model=row.model,
            price=row.price,
            artifact_id=row.artifact_id,
            experience=row.experience,
            artifact_level=row.artifact_level,
        )

"""아티팩트 Service — Core↔DB 연결, EventBus 통신

- seed JSON → DB 동기화 후 레지스트리 (재)로드
- NPC 사망 → 인카운터 크레딧
- 처치 경험치 → 장착 아티팩트 경험치/레벨
- 배낭 안 스크롤 결합
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from src.core.artifact.credit import CreditRouter, grant_artifact_credit
from src.core.artifact.enums import TurnInError, XPSource
from src.core.artifact.experience import (
    ExperienceProgression,
    progress_percent,
    total_experience,
)
from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.models import (
    ArtifactDefinition,
    ArtifactInstance,
    InventoryItem,
    ItemTemplate,
    PlayerProfile,
)
from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.reuse import ReuseTimers
from src.core.artifact.scrolls import Combination, ScrollCombinationEngine
from src.core.artifact.source import JsonArtifactSource
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.db.models import (
    ArtifactBonusModel,
    ArtifactModel,
    ArtifactVersionModel,
    ItemTemplateModel,
    PlayerModel,
)
from src.services.inventory import SqlInventory

logger = get_logger(__name__)

SOURCE = "artifact_service"


@dataclass
class CombineOutcome:
    combination: Combination
    error: TurnInError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ArtifactService:
    """아티팩트 조회 + 경험치/크레딧/스크롤 처리"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        registry: ArtifactRegistry,
        resolver: NameResolver,
        handles: QuestHandleRegistry,
        router: CreditRouter | None = None,
        xp_rate: int = 350,
        guild_bonus_percent: int = 5,
        credit_radius: int = 3500,
        backpack_slots: int = 40,
    ):
        self._db = db
        self._bus = event_bus
        self._registry = registry
        self._resolver = resolver
        self._handles = handles
        self._router = router or CreditRouter()
        self._scrolls = ScrollCombinationEngine(registry)
        self._progression = ExperienceProgression(registry, xp_rate, guild_bonus_percent)
        self._reuse = ReuseTimers()
        self._credit_radius = credit_radius
        self._backpack_slots = backpack_slots
        self._register_event_handlers()

    def _register_event_handlers(self) -> None:
        """EventBus 구독"""
        self._bus.subscribe(EventTypes.NPC_DIED, self._on_npc_died)
        self._bus.subscribe(EventTypes.EXPERIENCE_GAINED, self._on_experience_gained)

    @property
    def registry(self) -> ArtifactRegistry:
        return self._registry

    @property
    def router(self) -> CreditRouter:
        return self._router

    # === seed 동기화 ===

    def sync_seed_data(self, source: JsonArtifactSource) -> int:
        """seed → DB 동기화 후 레지스트리 재로드. 서버 시작 시 호출.
        이미 있는 행은 건드리지 않는다.
        반환: 새로 추가된 아티팩트 수.
        """
        count = 0
        for art in source.load_artifacts():
            if self._db.get(ArtifactModel, art.artifact_id) is None:
                self._db.add(self._artifact_to_orm(art))
                count += 1

        for tmpl in source.load_templates():
            if self._db.get(ItemTemplateModel, tmpl.template_id) is None:
                self._db.add(
                    ItemTemplateModel(
                        template_id=tmpl.template_id,
                        name=tmpl.name,
                        allowed_classes=list(tmpl.allowed_classes),
                        realm=tmpl.realm,
                        model=tmpl.model,
                        price=tmpl.price,
                    )
                )
        self._db.flush()

        for version in source.load_versions():
            exists = (
                self._db.query(ArtifactVersionModel)
                .filter(
                    ArtifactVersionModel.artifact_id == version.artifact_id,
                    ArtifactVersionModel.item_id == version.item_id,
                )
                .first()
            )
            if exists is None:
                self._db.add(
                    ArtifactVersionModel(
                        artifact_id=version.artifact_id,
                        version=version.version,
                        item_id=version.item_id,
                        realm=version.realm,
                    )
                )

        for bonus in source.load_bonuses():
            exists = (
                self._db.query(ArtifactBonusModel)
                .filter(
                    ArtifactBonusModel.artifact_id == bonus.artifact_id,
                    ArtifactBonusModel.bonus_id == bonus.bonus_id,
                )
                .first()
            )
            if exists is None:
                self._db.add(
                    ArtifactBonusModel(
                        artifact_id=bonus.artifact_id,
                        bonus_id=bonus.bonus_id,
                        level=bonus.level,
                    )
                )
        self._db.commit()
        logger.info("Synced %d artifacts to DB", count)

        for matcher in source.load_credit_routes():
            self._router.add(matcher)

        loaded = self._registry.reload()
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.ARTIFACTS_LOADED,
                data={"count": loaded, "generation": self._registry.generation},
                source=SOURCE,
            )
        )
        return count

    # === 조회 ===

    def list_artifacts(self, zone: str | None = None) -> list[ArtifactDefinition]:
        if zone:
            return self._registry.get_by_zone(zone)
        return self._registry.get_all()

    def get_artifact(self, artifact_id: str) -> ArtifactDefinition | None:
        return self._registry.get(artifact_id)

    def resolve_name(self, raw: str) -> str | None:
        artifact_id = self._resolver.resolve(raw)
        if artifact_id is None:
            logger.warning("Cannot identify artifact from %r", raw)
        return artifact_id

    def level_requirements(self, artifact_id: str) -> list[int]:
        return self._registry.get_level_requirements(artifact_id)

    def versions_for(self, artifact_id: str, player_id: str) -> dict[str, ItemTemplate]:
        player = self.get_player(player_id)
        return self._registry.get_versions(artifact_id, player.character_class, player.realm)

    # === 플레이어 ===

    def get_player(self, player_id: str) -> PlayerProfile:
        row = self._db.get(PlayerModel, player_id)
        if row is None:
            raise ValueError(f"Unknown player: {player_id}")
        return PlayerProfile(
            player_id=row.player_id,
            name=row.name,
            character_class=row.character_class,
            realm=row.realm,
            is_praying=row.is_praying,
            guild_artifact_xp_buff=row.guild_artifact_xp_buff,
        )

    def inventory_for(self, player_id: str) -> SqlInventory:
        return SqlInventory(self._db, player_id, self._backpack_slots, self._registry)

    def can_receive(self, player_id: str, artifact_id: str) -> bool:
        """이미 그 아티팩트를 가지고 있으면 받을 수 없다."""
        if self._db.get(PlayerModel, player_id) is None:
            return False
        carried = self._registry.artifacts_carried(self.inventory_for(player_id).items())
        return artifact_id not in carried

    # === 스크롤 ===

    def give_scroll(self, player_id: str, artifact_id: str, page_number: int) -> bool:
        """단일 페이지 스크롤 지급 (전리품 등)"""
        blueprint = self._scrolls.create_scroll(artifact_id, page_number)
        if blueprint is None:
            raise ValueError(f"Unknown artifact: {artifact_id}")
        return self.inventory_for(player_id).receive_scroll(blueprint)

    def combine(self, player_id: str, object_id_a: str, object_id_b: str) -> CombineOutcome:
        """배낭 안 두 스크롤 결합. 원본 둘을 제거하고 결과 하나를 넣는다."""
        inventory = self.inventory_for(player_id)
        item_a = inventory.get(object_id_a)
        item_b = inventory.get(object_id_b)
        empty = Combination(None, None, False)
        if item_a is None or item_b is None:
            return CombineOutcome(empty, TurnInError.NOT_FOUND)
        # 한 장을 자기 자신과 결합할 수는 없다
        if object_id_a == object_id_b:
            return CombineOutcome(empty, TurnInError.INVALID_COMBINATION)

        combination = self._scrolls.combine(item_a, item_b)
        if combination.blueprint is None:
            return CombineOutcome(empty, TurnInError.INVALID_COMBINATION)

        inventory.remove_item(item_a)
        inventory.remove_item(item_b)
        inventory.receive_scroll(combination.blueprint)

        self._bus.emit(
            GameEvent(
                event_type=EventTypes.SCROLLS_COMBINED,
                data={
                    "player_id": player_id,
                    "artifact_id": combination.artifact_id,
                    "pages": int(combination.blueprint.pages),
                    "became_book": combination.became_book,
                },
                source=SOURCE,
            )
        )
        logger.debug(
            "%s combined %s + %s into %s",
            player_id,
            item_a.name,
            item_b.name,
            combination.blueprint.name,
        )
        return CombineOutcome(combination)

    def is_artifact_scroll(self, item: InventoryItem) -> bool:
        return self._scrolls.is_artifact_scroll(item)

    # === 재사용 대기 ===

    def start_reuse(self, player_id: str, template_id: str, seconds: float) -> None:
        self._reuse.start(player_id, template_id, seconds)

    def reuse_remaining(self, player_id: str, template_id: str) -> int:
        return self._reuse.remaining_seconds(player_id, template_id)

    # === 경험치 ===

    def progress(self, player_id: str, object_id: str) -> int:
        """장착 아티팩트의 다음 레벨 진행률 (%)"""
        item = self.inventory_for(player_id).get(object_id)
        if item is None or item.artifact_id is None:
            raise ValueError(f"Unknown artifact item: {object_id}")
        return progress_percent(
            ArtifactInstance(item.artifact_id, item.name, item.experience, item.artifact_level)
        )

    # === 이벤트 핸들러 ===

    def _on_npc_died(self, event: GameEvent) -> None:
        """보스 사망 → 반경 내 플레이어에게 인카운터 크레딧"""
        data = event.data
        artifact_id = self._router.resolve(data.get("npc_name"), data.get("region", 0))
        if artifact_id is None:
            return

        for player_id in self._players_near(
            data.get("region", 0), data.get("x", 0), data.get("y", 0)
        ):
            if not grant_artifact_credit(
                self._registry, self._handles, player_id, artifact_id, self.can_receive
            ):
                continue
            self._bus.emit(
                GameEvent(
                    event_type=EventTypes.ENCOUNTER_CREDIT_GRANTED,
                    data={"player_id": player_id, "artifact_id": artifact_id},
                    source=SOURCE,
                )
            )

    def _players_near(self, region: int, x: int, y: int) -> list[str]:
        rows = self._db.query(PlayerModel).filter(PlayerModel.region == region).all()
        radius_sq = self._credit_radius * self._credit_radius
        return [
            r.player_id
            for r in rows
            if (r.x - x) ** 2 + (r.y - y) ** 2 <= radius_sq
        ]

    def _on_experience_gained(self, event: GameEvent) -> None:
        """처치 경험치 → 장착 중인 모든 아티팩트"""
        data = event.data
        player_id = data.get("player_id")
        if not player_id or self._db.get(PlayerModel, player_id) is None:
            return
        try:
            source = XPSource(data.get("source", XPSource.OTHER.value))
        except ValueError:
            source = XPSource.OTHER

        player = self.get_player(player_id)
        amount = total_experience(
            data.get("base", 0), data.get("camp", 0), data.get("group", 0), data.get("outpost", 0)
        )

        for row in self.inventory_for(player_id).equipped_artifacts():
            instance = ArtifactInstance(
                artifact_id=row.artifact_id,
                name=row.name,
                experience=row.experience,
                level=row.artifact_level,
                object_id=row.object_id,
            )
            result = self._progression.grant_experience(instance, amount, source, holder=player)
            if not result.messages:
                continue

            row.experience = instance.experience
            row.artifact_level = instance.level
            self._db.commit()

            self._bus.emit(
                GameEvent(
                    event_type=EventTypes.ARTIFACT_EXPERIENCE_GAINED,
                    data={
                        "player_id": player_id,
                        "object_id": row.object_id,
                        "artifact_id": row.artifact_id,
                        "gained": result.gained,
                        "messages": result.messages,
                    },
                    source=SOURCE,
                )
            )
            for level in result.levels:
                self._bus.emit(
                    GameEvent(
                        event_type=EventTypes.ARTIFACT_LEVEL_GAINED,
                        data={
                            "player_id": player_id,
                            "object_id": row.object_id,
                            "artifact_id": row.artifact_id,
                            "level": level,
                        },
                        source=SOURCE,
                    )
                )

    # === 변환 ===

    @staticmethod
    def _artifact_to_orm(art: ArtifactDefinition) -> ArtifactModel:
        return ArtifactModel(
            artifact_id=art.artifact_id,
            zone=art.zone,
            book_id=art.book_id,
            scroll1=art.scroll1,
            scroll2=art.scroll2,
            scroll3=art.scroll3,
            scroll12=art.scroll12,
            scroll13=art.scroll13,
            scroll23=art.scroll23,
            scroll_model1=art.scroll_model1,
            scroll_model2=art.scroll_model2,
            book_model=art.book_model,
            xp_rate=art.xp_rate,
            encounter_id=art.encounter_id,
            quest_id=art.quest_id,
            scholar_id=art.scholar_id,
            credit=art.credit,
        )

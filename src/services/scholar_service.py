"""학자 NPC Service — 아티팩트 목록, 귓속말, 아이템 전달

전달된 아이템 처리 순서:
1. 진행 중인 턴인 세션
2. 인카운터 크레딧 토큰
3. 보유 아티팩트 (버전 교환) / 완성된 책 (턴인)
"""

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from src.core.artifact.credit import grant_bounty_credit, has_encounter_credit
from src.core.artifact.enums import ObjectType, PageSet, TurnInError, TurnInStep
from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.models import InventoryItem, PlayerProfile
from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.scrolls import ScrollCombinationEngine
from src.core.artifact.turnin import TurnInNegotiation, TurnInResult
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.db.models import PlayerModel
from src.services.inventory import SqlInventory
from src.services.quest_property_store import SqlQuestPropertyStore

logger = get_logger(__name__)

SOURCE = "scholar_service"

MSG_NO_ARTIFACTS = "I have no artifacts available for your class."
MSG_ARTIFACT_LIST = (
    "Which artifact may I assist you with, {player}? "
    "I study the lore and magic of the following artifacts: {artifacts}."
)
MSG_FOLLOW_UP = (
    "{player}, did you find any of the stories that chronicle the powers of the artifacts? "
    "We can unlock the powers of these artifacts by studying the stories. "
    "I can take the story and unlock the artifact's magic."
)
MSG_CREDIT_RECORDED = "Your encounter credit has been recorded."
MSG_NOT_WANTED = "{scholar} doesn't want that item."
MSG_QUEST_STARTED = "Bring me the story of {artifact}, {player}, and I shall unlock its magic."
MSG_DENY = (
    "{player}, I cannot activate that artifact for you. "
    "This could be because you have already activated it, or you are in the "
    "process of activating it, or you may not have completed everything "
    "you need to do. Remember that the activation process requires you to "
    "have credit for the artifact's encounter, as well as the artifact's "
    "complete book of scrolls."
)
MSG_REFUSE = (
    "I'm sorry, but I shouldn't recreate this artifact for you, {player}, "
    "as it wouldn't make proper use of your abilities. There are other artifacts "
    "in Atlantis better suited to your needs."
)


@dataclass
class ScholarReply:
    messages: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=list)
    artifact_id: str | None = None
    step: TurnInStep = TurnInStep.AWAITING_ITEM
    error: TurnInError | None = None
    granted: str | None = None  # template_id

    @classmethod
    def from_turn_in(cls, result: TurnInResult) -> "ScholarReply":
        return cls(
            messages=[result.message] if result.message else [],
            options=list(result.options),
            artifact_id=result.artifact_id,
            step=result.step,
            error=result.error,
            granted=result.granted.template_id if result.granted else None,
        )


class ScholarService:
    """학자 대화 표면. 턴인 상태는 퀘스트 속성 저장소에 남는다."""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        registry: ArtifactRegistry,
        resolver: NameResolver,
        handles: QuestHandleRegistry,
        show_all: bool = True,
        backpack_slots: int = 40,
    ):
        self._db = db
        self._bus = event_bus
        self._registry = registry
        self._resolver = resolver
        self._handles = handles
        self._show_all = show_all
        self._backpack_slots = backpack_slots
        self._scrolls = ScrollCombinationEngine(registry)
        self._turnin = TurnInNegotiation(
            registry, resolver, handles, SqlQuestPropertyStore(db)
        )

    @property
    def turnin(self) -> TurnInNegotiation:
        return self._turnin

    # === 헬퍼 ===

    def _player(self, player_id: str) -> PlayerProfile:
        row = self._db.get(PlayerModel, player_id)
        if row is None:
            raise ValueError(f"Unknown player: {player_id}")
        return PlayerProfile(
            player_id=row.player_id,
            name=row.name,
            character_class=row.character_class,
            realm=row.realm,
        )

    def _inventory(self, player_id: str) -> SqlInventory:
        return SqlInventory(self._db, player_id, self._backpack_slots, self._registry)

    def _can_receive(self, player: PlayerProfile, artifact_id: str) -> bool:
        """클래스/렐름에 맞는 버전이 있어야 받을 수 있다."""
        return bool(
            self._registry.get_versions(artifact_id, player.character_class, player.realm)
        )

    def studied_artifacts(self, scholar: str) -> list[str]:
        return [
            art.artifact_id
            for art in self._registry.get_all()
            if any(s.lower() == scholar.lower() for s in art.scholars)
        ]

    # === 대화 ===

    def interact(self, scholar: str, player_id: str) -> ScholarReply:
        """열린 세션이 있으면 그 질문을 다시, 없으면 연구 중인 아티팩트 목록."""
        player = self._player(player_id)
        pending = self._turnin.prompt(player)
        if pending is not None:
            return ScholarReply.from_turn_in(pending)

        available = [
            artifact_id
            for artifact_id in self.studied_artifacts(scholar)
            if self._show_all or self._can_receive(player, artifact_id)
        ]
        if not available:
            intro = MSG_NO_ARTIFACTS
        else:
            intro = MSG_ARTIFACT_LIST.format(
                player=player.name,
                artifacts=", ".join(f"[{a}]" for a in available),
            )
        return ScholarReply(
            messages=[intro, MSG_FOLLOW_UP.format(player=player.name)],
            options=available,
        )

    def whisper(self, scholar: str, player_id: str, text: str) -> ScholarReply:
        """귓속말: 진행 중인 턴인 선택 또는 아티팩트 퀘스트 시작."""
        player = self._player(player_id)
        session = self._turnin.load_session(player_id)
        if session is not None and session.step == TurnInStep.AWAITING_CHOICE:
            result = self._turnin.choose(player, self._inventory(player_id), text)
            self._emit_turn_in(player_id, result)
            return ScholarReply.from_turn_in(result)

        wanted = (text or "").strip().lower()
        for artifact_id in self.studied_artifacts(scholar):
            if artifact_id.lower() == wanted:
                return self._start_artifact_quest(player, artifact_id)
        return ScholarReply()

    def _start_artifact_quest(self, player: PlayerProfile, artifact_id: str) -> ScholarReply:
        quest = self._handles.quest_for(artifact_id)
        eligible = (
            quest is not None
            and has_encounter_credit(self._handles, player.player_id, artifact_id)
            and quest.is_finished_by(player.player_id) == 0
            and not quest.is_active_for(player.player_id)
        )
        if not eligible:
            return ScholarReply(
                messages=[MSG_DENY.format(player=player.name)], artifact_id=artifact_id
            )
        if not (self._show_all or self._can_receive(player, artifact_id)):
            return ScholarReply(
                messages=[MSG_REFUSE.format(player=player.name)], artifact_id=artifact_id
            )

        quest.start(player.player_id)
        logger.info("Artifact quest for %s started by %s", artifact_id, player.player_id)
        return ScholarReply(
            messages=[MSG_QUEST_STARTED.format(artifact=artifact_id, player=player.name)],
            artifact_id=artifact_id,
        )

    def abandon(self, player_id: str) -> bool:
        return self._turnin.abandon(player_id)

    # === 아이템 전달 ===

    def receive_item(self, scholar: str, player_id: str, object_id: str) -> ScholarReply:
        player = self._player(player_id)
        inventory = self._inventory(player_id)
        item = inventory.get(object_id)
        if item is None:
            raise ValueError(f"Unknown item: {object_id}")

        session = self._turnin.load_session(player_id)
        if session is not None and session.step == TurnInStep.AWAITING_CHOICE:
            return self._hand_over(player, inventory, item, scholar)

        if grant_bounty_credit(
            self._registry,
            self._handles,
            player_id,
            item.name,
            lambda pid, art: self._can_receive(player, art),
        ):
            inventory.remove_item(item)
            return ScholarReply(messages=[MSG_CREDIT_RECORDED])

        if self._registry.is_artifact(item) or self._is_book(item):
            return self._hand_over(player, inventory, item, scholar)

        return ScholarReply(messages=[MSG_NOT_WANTED.format(scholar=scholar)])

    def _is_book(self, item: InventoryItem) -> bool:
        if item.object_type != ObjectType.MAGICAL:
            return False
        pages, _ = self._scrolls.get_page_numbers(item)
        if pages == PageSet.ALL_PAGES:
            return True
        if pages != PageSet.NO_PAGE:
            return False
        return self._resolver.resolve_book(item.name) is not None

    def _hand_over(
        self,
        player: PlayerProfile,
        inventory: SqlInventory,
        item: InventoryItem,
        scholar: str,
    ) -> ScholarReply:
        if self._registry.is_artifact(item):
            result = self._turnin.begin_from_artifact(player, inventory, item, scholar)
        else:
            result = self._turnin.begin_from_book(player, inventory, item, scholar)
        self._emit_turn_in(player.player_id, result, starting=True)
        return ScholarReply.from_turn_in(result)

    def _emit_turn_in(
        self, player_id: str, result: TurnInResult, starting: bool = False
    ) -> None:
        if result.error is not None:
            event_type = EventTypes.TURNIN_FAILED
        elif result.step == TurnInStep.FINISHED:
            event_type = EventTypes.TURNIN_COMPLETED
        elif starting:
            event_type = EventTypes.TURNIN_STARTED
        else:
            return
        self._bus.emit(
            GameEvent(
                event_type=event_type,
                data={
                    "player_id": player_id,
                    "artifact_id": result.artifact_id,
                    "error": result.error.value if result.error else None,
                    "granted": result.granted.template_id if result.granted else None,
                },
                source=SOURCE,
            )
        )

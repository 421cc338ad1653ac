"""아티팩트 턴인 협상 — 플레이어별, 저장되는 상태 머신

AWAITING_ITEM → AWAITING_CHOICE → FINISHED

버전 키("Slash;Polearm;Strength")의 n번째 토큰이 n라운드의 선택지다.
라운드마다 살아남은 후보들의 토큰을 모아
- 값이 하나뿐이면 자동으로 고르고 다음 라운드로,
- 둘 이상이면 플레이어에게 묻는다.
후보가 하나 남으면 그 템플릿을 지급한다.

세션 상태는 QuestPropertyStore에 문자열로 저장되어 재접속 후에도 이어진다.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Optional

from .credit import has_encounter_credit
from .enums import TurnInError, TurnInStep
from .handles import QuestHandleRegistry
from .models import InventoryItem, ItemTemplate, PlayerProfile
from .naming import NameResolver
from .ports import Inventory, QuestPropertyStore
from .registry import ArtifactRegistry

logger = logging.getLogger(__name__)

SESSION_KEY = "artifact_turn_in"
MAX_ROUNDS = 3

TOKEN_SEP = ";"
LIST_SEP = "|"

MSG_BACKPACK_FULL = "Your backpack is full, please make some room and try again."
MSG_HERE_IS = "Here is your {name}, {player}. May it serve you well!"
MSG_NO_MATCH = "I can't seem to find a matching version of that artifact."
MSG_NEED_CREDIT = "You still need the encounter credit for this artifact."
MSG_BAD_BOOK = "Something went wrong with that book. Please try again."
MSG_BUSY = "Let us finish choosing your {artifact} first, {player}."
MSG_UNKNOWN_CHOICE = "I'm not sure which version you mean. Your options are: {options}"
MSG_READY = "Your {artifact} is ready, {player}. Just say the word."
MSG_NO_SWAP = "There is no other version of {artifact} I can make for you, {player}."


def split_tokens(label: str) -> list[str]:
    return [t.strip() for t in label.split(TOKEN_SEP)]


def token_at(label: str, position: int) -> str:
    tokens = split_tokens(label)
    return tokens[position] if position < len(tokens) else ""


def matches_prefix(label: str, chosen: list[str]) -> bool:
    """빈 선택과 빈 토큰은 와일드카드."""
    for position, choice in enumerate(chosen):
        token = token_at(label, position)
        if choice and token and token.lower() != choice.lower():
            return False
    return True


def format_options(options: list[str]) -> str:
    return " ".join(f"[{o}]" for o in options)


@dataclass
class TurnInSession:
    player_id: str
    artifact_id: str
    scholar: str = ""
    step: TurnInStep = TurnInStep.AWAITING_ITEM
    round: int = 0
    candidates: list[str] = field(default_factory=list)
    chosen: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=list)
    source_object_id: str = ""
    source_slot: int = -1
    experience: int = 0
    level: int = 0

    def to_properties(self) -> dict[str, str]:
        return {
            "scholar": self.scholar,
            "artifact": self.artifact_id,
            "step": str(int(self.step)),
            "round": str(self.round),
            "candidates": LIST_SEP.join(self.candidates),
            "chosen": TOKEN_SEP.join(self.chosen),
            "options": LIST_SEP.join(self.options),
            "source_object": self.source_object_id,
            "source_slot": str(self.source_slot),
            "source_xp": str(self.experience),
            "source_level": str(self.level),
        }


@dataclass
class TurnInResult:
    step: TurnInStep
    message: str = ""
    error: Optional[TurnInError] = None
    artifact_id: Optional[str] = None
    options: list[str] = field(default_factory=list)
    granted: Optional[ItemTemplate] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Narrowed:
    winner: Optional[str] = None
    error: Optional[TurnInError] = None


def _parse_int(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        return default


class TurnInNegotiation:
    def __init__(
        self,
        registry: ArtifactRegistry,
        resolver: NameResolver,
        handles: QuestHandleRegistry,
        store: QuestPropertyStore,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._handles = handles
        self._store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, player_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(player_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[player_id] = lock
            return lock

    # === 저장 ===

    def load_session(self, player_id: str) -> Optional[TurnInSession]:
        def get(key: str) -> Optional[str]:
            return self._store.get(player_id, SESSION_KEY, key)

        artifact_id = get("artifact")
        if not artifact_id:
            return None

        session = TurnInSession(
            player_id=player_id,
            artifact_id=artifact_id,
            scholar=get("scholar") or "",
            source_object_id=get("source_object") or "",
            source_slot=_parse_int(get("source_slot"), -1),
            experience=_parse_int(get("source_xp"), 0),
            level=_parse_int(get("source_level"), 0),
        )
        try:
            session.step = TurnInStep(_parse_int(get("step"), 0))
        except ValueError:
            session.step = TurnInStep.AWAITING_ITEM
        session.candidates = [c for c in (get("candidates") or "").split(LIST_SEP) if c.strip()]
        session.options = [o for o in (get("options") or "").split(LIST_SEP) if o.strip()]

        round_raw = get("round")
        chosen_raw = get("chosen") or ""
        round_index = _parse_int(round_raw, -1)
        chosen = chosen_raw.split(TOKEN_SEP) if round_index > 0 else []
        if not 0 <= round_index <= MAX_ROUNDS or len(chosen) != round_index:
            logger.warning(
                "Corrupt turn-in state for %s (round=%r), resetting to round 0",
                player_id,
                round_raw,
            )
            session.round = 0
            session.chosen = []
            session.candidates = []
            session.options = []
            self._save(session)
            return session

        session.round = round_index
        session.chosen = chosen
        return session

    def _save(self, session: TurnInSession) -> None:
        for key, value in session.to_properties().items():
            self._store.set(session.player_id, SESSION_KEY, key, value)

    def _delete(self, player_id: str) -> None:
        self._store.delete_session(player_id, SESSION_KEY)

    def abandon(self, player_id: str) -> bool:
        with self._lock_for(player_id):
            if self.load_session(player_id) is None:
                return False
            self._delete(player_id)
            logger.info("Turn-in abandoned by %s", player_id)
            return True

    # === 시작 ===

    def begin_from_book(
        self,
        player: PlayerProfile,
        inventory: Inventory,
        book: InventoryItem,
        scholar: str = "",
    ) -> TurnInResult:
        """완성된 책 전달. 버전이 하나면 즉시 지급, 여러 개면 선택을 묻는다."""
        with self._lock_for(player.player_id):
            busy = self._check_busy(player, book)
            if busy is not None:
                return busy

            artifact_id = self._resolve_book(book)
            if artifact_id is None:
                logger.warning(
                    "Book %r (%s) could not be linked to any artifact",
                    book.name,
                    book.template_id,
                )
                return TurnInResult(
                    TurnInStep.AWAITING_ITEM, MSG_BAD_BOOK, TurnInError.NOT_FOUND
                )

            if not has_encounter_credit(self._handles, player.player_id, artifact_id):
                return TurnInResult(
                    TurnInStep.AWAITING_ITEM,
                    MSG_NEED_CREDIT,
                    TurnInError.NO_ENCOUNTER_CREDIT,
                    artifact_id,
                )

            session = TurnInSession(
                player_id=player.player_id,
                artifact_id=artifact_id,
                scholar=scholar,
                source_object_id=book.object_id,
                source_slot=book.slot,
            )
            return self._start(player, inventory, session)

    def begin_from_artifact(
        self,
        player: PlayerProfile,
        inventory: Inventory,
        artifact: InventoryItem,
        scholar: str = "",
    ) -> TurnInResult:
        """보유한 아티팩트를 다른 버전으로 교환. 경험치와 레벨은 유지된다."""
        with self._lock_for(player.player_id):
            busy = self._check_busy(player, artifact)
            if busy is not None:
                return busy

            artifact_id = artifact.artifact_id or self._registry.get_artifact_id_from_item_id(
                artifact.template_id
            )
            if artifact_id is None or self._registry.get(artifact_id) is None:
                logger.warning("Item %s is not a known artifact", artifact.template_id)
                return TurnInResult(TurnInStep.AWAITING_ITEM, MSG_NO_MATCH, TurnInError.NOT_FOUND)

            # 교환할 다른 버전이 없으면 받지 않는다
            versions = self._registry.get_versions(
                artifact_id, player.character_class, player.realm
            )
            if len(versions) < 2:
                return TurnInResult(
                    TurnInStep.AWAITING_ITEM,
                    MSG_NO_SWAP.format(artifact=artifact_id, player=player.name),
                    TurnInError.NO_VERSIONS,
                    artifact_id,
                )

            session = TurnInSession(
                player_id=player.player_id,
                artifact_id=artifact_id,
                scholar=scholar,
                source_object_id=artifact.object_id,
                source_slot=artifact.slot,
                experience=artifact.experience,
                level=artifact.artifact_level,
            )
            return self._start(player, inventory, session)

    def _resolve_book(self, book: InventoryItem) -> Optional[str]:
        if book.artifact_id and self._registry.get(book.artifact_id) is not None:
            return book.artifact_id
        return self._resolver.resolve_book(book.name)

    def _check_busy(self, player: PlayerProfile, item: InventoryItem) -> Optional[TurnInResult]:
        session = self.load_session(player.player_id)
        if session is None or session.step != TurnInStep.AWAITING_CHOICE:
            return None
        if item.object_id == session.source_object_id:
            return self._prompt(player, session)
        return TurnInResult(
            TurnInStep.AWAITING_CHOICE,
            MSG_BUSY.format(artifact=session.artifact_id, player=player.name),
            TurnInError.SESSION_BUSY,
            session.artifact_id,
            list(session.options),
        )

    def _start(
        self, player: PlayerProfile, inventory: Inventory, session: TurnInSession
    ) -> TurnInResult:
        versions = self._registry.get_versions(
            session.artifact_id, player.character_class, player.realm
        )
        if not versions:
            logger.warning(
                "No versions of %s for class %d realm %d",
                session.artifact_id,
                player.character_class,
                player.realm,
            )
            return TurnInResult(
                TurnInStep.AWAITING_ITEM, MSG_NO_MATCH, TurnInError.NO_VERSIONS, session.artifact_id
            )

        session.candidates = list(versions)
        if len(versions) == 1:
            return self._grant(player, inventory, session, next(iter(versions.values())))

        narrowed = self._narrow(session)
        if narrowed.error is not None:
            return self._fail(session, narrowed.error)
        if narrowed.winner is not None:
            return self._grant(player, inventory, session, versions[narrowed.winner])

        session.step = TurnInStep.AWAITING_CHOICE
        self._save(session)
        logger.info(
            "Turn-in of %s started for %s (%d versions)",
            session.artifact_id,
            player.player_id,
            len(versions),
        )
        return self._prompt(player, session)

    # === 선택 ===

    def prompt(self, player: PlayerProfile) -> Optional[TurnInResult]:
        """열린 세션이 있으면 현재 질문을 다시 낸다."""
        with self._lock_for(player.player_id):
            session = self.load_session(player.player_id)
            if session is None or session.step != TurnInStep.AWAITING_CHOICE:
                return None
            if not session.options:
                narrowed = self._renarrow(player, session)
                if narrowed.error is not None:
                    return self._fail(session, narrowed.error)
                if narrowed.winner is not None:
                    return TurnInResult(
                        TurnInStep.AWAITING_CHOICE,
                        MSG_READY.format(artifact=session.artifact_id, player=player.name),
                        None,
                        session.artifact_id,
                    )
            return self._prompt(player, session)

    def choose(self, player: PlayerProfile, inventory: Inventory, reply: str) -> TurnInResult:
        with self._lock_for(player.player_id):
            session = self.load_session(player.player_id)
            if session is None or session.step != TurnInStep.AWAITING_CHOICE:
                return TurnInResult(TurnInStep.AWAITING_ITEM, "", TurnInError.NOT_FOUND)

            if not session.options:
                narrowed = self._renarrow(player, session)
                if narrowed.error is not None:
                    return self._fail(session, narrowed.error)
                if narrowed.winner is not None:
                    template = self._versions(player, session)[narrowed.winner]
                    return self._grant(player, inventory, session, template)
                if (reply or "").strip().strip("[]").strip().lower() not in (
                    o.lower() for o in session.options
                ):
                    return self._prompt(player, session)

            wanted = (reply or "").strip().strip("[]").strip().lower()
            picked = next((o for o in session.options if o.lower() == wanted), None)
            if picked is None:
                return TurnInResult(
                    TurnInStep.AWAITING_CHOICE,
                    MSG_UNKNOWN_CHOICE.format(options=format_options(session.options)),
                    TurnInError.UNKNOWN_CHOICE,
                    session.artifact_id,
                    list(session.options),
                )

            # 지급이 성공하기 전까지 저장된 세션은 건드리지 않는다
            trial = replace(
                session, chosen=session.chosen + [picked], round=session.round + 1, options=[]
            )

            narrowed = self._narrow(trial)
            if narrowed.error is not None:
                return self._fail(trial, narrowed.error)
            if narrowed.winner is None:
                self._save(trial)
                return self._prompt(player, trial)

            template = self._versions(player, trial).get(narrowed.winner)
            if template is None:
                return self._fail(trial, TurnInError.NO_VERSIONS)
            result = self._grant(player, inventory, trial, template)
            if result.ok:
                session.options.clear()
            else:
                result.options = list(session.options)
            return result

    def _renarrow(self, player: PlayerProfile, session: TurnInSession) -> _Narrowed:
        """선택지가 비어 있는 세션(리셋된 세션)을 레지스트리 기준으로 다시 계산한다."""
        if not session.candidates:
            session.candidates = list(self._versions(player, session))
        narrowed = self._narrow(session)
        if narrowed.error is None:
            self._save(session)
        return narrowed

    def _versions(self, player: PlayerProfile, session: TurnInSession) -> dict[str, ItemTemplate]:
        return self._registry.get_versions(
            session.artifact_id, player.character_class, player.realm
        )

    def _narrow(self, session: TurnInSession) -> _Narrowed:
        """자동 선택 가능한 라운드를 건너뛰며 다음 질문 또는 승자를 찾는다."""
        while True:
            survivors = [c for c in session.candidates if matches_prefix(c, session.chosen)]
            if len(survivors) == 1:
                return _Narrowed(winner=survivors[0])
            if not survivors:
                return _Narrowed(error=TurnInError.NO_VERSIONS)
            if session.round >= MAX_ROUNDS:
                return _Narrowed(error=TurnInError.AMBIGUOUS_NO_WINNER)

            values: list[str] = []
            for label in survivors:
                token = token_at(label, session.round)
                if token and token.lower() not in (v.lower() for v in values):
                    values.append(token)

            if len(values) >= 2:
                session.options = values
                return _Narrowed()

            session.chosen.append(values[0] if values else "")
            session.round += 1

    def _prompt(self, player: PlayerProfile, session: TurnInSession) -> TurnInResult:
        message = "Which version of {0} do you prefer, {1}? {2}".format(
            session.artifact_id, player.name, format_options(session.options)
        )
        return TurnInResult(
            TurnInStep.AWAITING_CHOICE, message, None, session.artifact_id, list(session.options)
        )

    def _fail(self, session: TurnInSession, error: TurnInError) -> TurnInResult:
        logger.warning(
            "Turn-in of %s for %s failed: %s (round %d)",
            session.artifact_id,
            session.player_id,
            error.value,
            session.round,
        )
        return TurnInResult(session.step, MSG_NO_MATCH, error, session.artifact_id)

    # === 지급 ===

    def _grant(
        self,
        player: PlayerProfile,
        inventory: Inventory,
        session: TurnInSession,
        template: ItemTemplate,
    ) -> TurnInResult:
        if not inventory.receive_item(
            template, experience=session.experience, level=session.level
        ):
            logger.warning(
                "Backpack full, %s could not receive %s", player.player_id, template.template_id
            )
            return TurnInResult(
                session.step,
                MSG_BACKPACK_FULL,
                TurnInError.CAPACITY_EXCEEDED,
                session.artifact_id,
                list(session.options),
            )

        self._remove_source(inventory, session)

        quest = self._handles.quest_for(session.artifact_id)
        if quest is not None and quest.is_active_for(player.player_id):
            quest.force_complete(player.player_id)

        self._delete(player.player_id)
        logger.info(
            "Turn-in of %s finished for %s: %s",
            session.artifact_id,
            player.player_id,
            template.template_id,
        )
        return TurnInResult(
            TurnInStep.FINISHED,
            MSG_HERE_IS.format(name=template.name, player=player.name),
            None,
            session.artifact_id,
            granted=template,
        )

    @staticmethod
    def _remove_source(inventory: Inventory, session: TurnInSession) -> None:
        """원본 책/아티팩트를 개체 id로 찾아 제거. 같은 이름의 다른 개체는 건드리지 않는다."""
        if not session.source_object_id:
            return
        item = inventory.find_by_slot(session.source_slot)
        if item is None or item.object_id != session.source_object_id:
            item = next(
                (i for i in inventory.items() if i.object_id == session.source_object_id),
                None,
            )
        if item is None:
            logger.warning(
                "Source item %s for %s is gone", session.source_object_id, session.artifact_id
            )
            return
        inventory.remove_item(item)

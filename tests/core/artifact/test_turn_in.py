"""턴인 협상 상태 머신 테스트 (인메모리 인벤토리/저장소/핸들)"""

import threading

import pytest

from src.core.artifact.enums import ObjectType, TurnInError, TurnInStep
from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.models import (
    ArtifactDefinition,
    ArtifactVersion,
    InventoryItem,
    ItemTemplate,
    PlayerProfile,
)
from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.turnin import (
    MSG_BAD_BOOK,
    MSG_BACKPACK_FULL,
    MSG_NEED_CREDIT,
    MSG_NO_SWAP,
    SESSION_KEY,
    TurnInNegotiation,
    format_options,
    matches_prefix,
    split_tokens,
    token_at,
)

ORACLE_BOOK = "Completed Dichotory's Dissertation"


class FakeInventory:
    def __init__(self, items=(), capacity=40):
        self._items = list(items)
        self.capacity = capacity
        self.received: list[tuple[ItemTemplate, int, int]] = []

    def items(self):
        return list(self._items)

    def find_by_slot(self, slot):
        return next((i for i in self._items if i.slot == slot), None)

    def remove_item(self, item):
        for existing in self._items:
            if existing.object_id == item.object_id:
                self._items.remove(existing)
                return True
        return False

    def receive_item(self, template, *, experience=0, level=0):
        if len(self._items) >= self.capacity:
            return False
        self.received.append((template, experience, level))
        self._items.append(
            InventoryItem(
                object_id=f"new-{len(self.received)}",
                template_id=template.template_id,
                name=template.name,
                object_type=ObjectType.ARTIFACT,
                slot=100 + len(self.received),
                experience=experience,
                artifact_level=level,
            )
        )
        return True


class FakeStore:
    def __init__(self):
        self.data: dict[tuple[str, str, str], str] = {}

    def get(self, player_id, session_key, key):
        return self.data.get((player_id, session_key, key))

    def set(self, player_id, session_key, key, value):
        self.data[(player_id, session_key, key)] = value

    def remove(self, player_id, session_key, key):
        self.data.pop((player_id, session_key, key), None)

    def delete_session(self, player_id, session_key):
        for k in [k for k in self.data if k[:2] == (player_id, session_key)]:
            del self.data[k]


class FakeQuestHandle:
    def __init__(self):
        self.finished: dict[str, int] = {}
        self.active: set[str] = set()

    def is_finished_by(self, player_id):
        return self.finished.get(player_id, 0)

    def is_active_for(self, player_id):
        return player_id in self.active

    def start(self, player_id):
        self.active.add(player_id)

    def force_complete(self, player_id):
        self.active.discard(player_id)
        self.finished[player_id] = self.finished.get(player_id, 0) + 1


class MemorySource:
    def __init__(self, artifacts, versions, templates):
        self._artifacts = artifacts
        self._versions = versions
        self._templates = templates

    def load_artifacts(self):
        return list(self._artifacts)

    def load_versions(self):
        return list(self._versions)

    def load_bonuses(self):
        return []

    def load_templates(self):
        return list(self._templates)


def book(name: str, object_id: str = "book-1", slot: int = 0) -> InventoryItem:
    return InventoryItem(
        object_id=object_id,
        template_id="artifact_scroll",
        name=name,
        object_type=ObjectType.MAGICAL,
        slot=slot,
    )


def keyed_registry(*labels: str) -> ArtifactRegistry:
    """버전 키만 다른 아티팩트 하나짜리 레지스트리"""
    versions = [ArtifactVersion("Spear of Kings", label, f"spear_{i}") for i, label in enumerate(labels)]
    templates = [ItemTemplate(f"spear_{i}", "Spear of Kings") for i in range(len(labels))]
    return ArtifactRegistry(
        MemorySource(
            [ArtifactDefinition("Spear of Kings", book_id="Spear of Kings Tale")],
            versions,
            templates,
        )
    )


@pytest.fixture()
def player():
    return PlayerProfile("p1", "Kael", character_class=1, realm=1)


@pytest.fixture()
def handles():
    registry = QuestHandleRegistry()
    encounter = FakeQuestHandle()
    encounter.force_complete("p1")
    quest = FakeQuestHandle()
    quest.start("p1")
    registry.register("Traldor's Oracle", encounter=encounter, quest=quest)
    registry.register("Maddening Scalars", encounter=FakeQuestHandle())
    return registry


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def negotiation(artifact_registry, name_resolver, handles, store):
    return TurnInNegotiation(artifact_registry, name_resolver, handles, store)


# ── 토큰 헬퍼 ──


class TestTokens:
    def test_split(self):
        assert split_tokens("Slash; Polearm ;Strength") == ["Slash", "Polearm", "Strength"]

    def test_token_at_past_end(self):
        assert token_at("Slash", 0) == "Slash"
        assert token_at("Slash", 2) == ""

    def test_prefix_match(self):
        assert matches_prefix("Slash;Polearm", ["slash"])
        assert not matches_prefix("Thrust;Polearm", ["Slash"])

    def test_empty_token_is_wildcard(self):
        assert matches_prefix("Slash", ["Slash", "Polearm"])
        assert matches_prefix("Slash;Polearm", ["", "Polearm"])

    def test_format_options(self):
        assert format_options(["Slash", "Thrust"]) == "[Slash] [Thrust]"


# ── 협상 ──


class TestNegotiation:
    def test_three_versions_two_rounds(self, negotiation, player, handles, store):
        inventory = FakeInventory([book(ORACLE_BOOK)])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[0], "Jarron")
        assert result.ok
        assert result.step == TurnInStep.AWAITING_CHOICE
        assert result.options == ["Slash", "Thrust"]
        assert "[Slash] [Thrust]" in result.message

        result = negotiation.choose(player, inventory, "slash")
        assert result.step == TurnInStep.AWAITING_CHOICE
        assert result.options == ["Polearm", "Staff"]

        result = negotiation.choose(player, inventory, "[Staff]")
        assert result.step == TurnInStep.FINISHED
        assert result.granted.template_id == "oracle_slash_staff"
        assert "Kael" in result.message

        assert [i.template_id for i in inventory.items()] == ["oracle_slash_staff"]
        assert handles.quest_for("Traldor's Oracle").is_finished_by("p1") == 1
        assert not any(k[0] == "p1" and k[1] == SESSION_KEY for k in store.data)

    def test_first_choice_can_decide(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        result = negotiation.choose(player, inventory, "Thrust")
        assert result.step == TurnInStep.FINISHED
        assert result.granted.template_id == "oracle_thrust_polearm"

    def test_single_version_granted_immediately(self, negotiation, player):
        inventory = FakeInventory([book("Cloudsong")])
        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.step == TurnInStep.FINISHED
        assert result.granted.template_id == "cloudsong_cloak"
        assert negotiation.load_session("p1") is None

    def test_unknown_choice(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        result = negotiation.choose(player, inventory, "Crush")
        assert result.error == TurnInError.UNKNOWN_CHOICE
        assert result.options == ["Slash", "Thrust"]
        assert negotiation.load_session("p1").round == 0

    def test_choose_without_session(self, negotiation, player):
        result = negotiation.choose(player, FakeInventory(), "Slash")
        assert result.error == TurnInError.NOT_FOUND

    def test_auto_selected_round(self, player, handles):
        registry = keyed_registry(
            "Thrust;Polearm;Strength", "Thrust;Polearm;Dexterity", "Thrust;Spear;Strength"
        )
        store = FakeStore()
        negotiation = TurnInNegotiation(registry, NameResolver(registry), handles, store)
        inventory = FakeInventory([book("Spear of Kings Tale")])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.options == ["Polearm", "Spear"]

        result = negotiation.choose(player, inventory, "Polearm")
        assert result.options == ["Strength", "Dexterity"]
        session = negotiation.load_session("p1")
        assert session.round == 2
        assert session.chosen == ["Thrust", "Polearm"]

        result = negotiation.choose(player, inventory, "Dexterity")
        assert result.granted.template_id == "spear_1"

    def test_labels_differing_only_by_case(self, player, handles):
        registry = ArtifactRegistry(
            MemorySource(
                [ArtifactDefinition("Spear of Kings", book_id="Spear of Kings Tale")],
                [
                    ArtifactVersion("Spear of Kings", "", "spear_a"),
                    ArtifactVersion("Spear of Kings", "", "spear_cloth"),
                ],
                [
                    ItemTemplate("spear_a", "Spear of Kings (Cloth)"),
                    ItemTemplate("spear_cloth", "Spear of Kings"),
                ],
            )
        )
        negotiation = TurnInNegotiation(registry, NameResolver(registry), handles, FakeStore())
        inventory = FakeInventory([book("Spear of Kings Tale")])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.step == TurnInStep.AWAITING_CHOICE
        assert result.options == ["Cloth", "cloth #2"]

        result = negotiation.choose(player, inventory, "cloth #2")
        assert result.granted.template_id == "spear_cloth"

    def test_ambiguous_after_max_rounds(self, player, handles):
        registry = keyed_registry("A;B;C;D", "A;B;C;E")
        negotiation = TurnInNegotiation(registry, NameResolver(registry), handles, FakeStore())
        inventory = FakeInventory([book("Spear of Kings Tale")])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.error == TurnInError.AMBIGUOUS_NO_WINNER
        assert inventory.received == []


# ── 실패 경로 ──


class TestFailures:
    def test_no_versions_for_realm(self, negotiation):
        outsider = PlayerProfile("p1", "Kael", character_class=1, realm=3)
        inventory = FakeInventory([book("Tartaros' Gift")])
        result = negotiation.begin_from_book(outsider, inventory, inventory.items()[0])
        assert result.error == TurnInError.NO_VERSIONS
        assert result.step == TurnInStep.AWAITING_ITEM
        assert negotiation.load_session("p1") is None

    def test_missing_encounter_credit(self, negotiation, player):
        inventory = FakeInventory([book("Scalars")])
        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.error == TurnInError.NO_ENCOUNTER_CREDIT
        assert result.message == MSG_NEED_CREDIT
        assert len(inventory.items()) == 1

    def test_unknown_book(self, negotiation, player):
        inventory = FakeInventory([book("Mysterious Tome")])
        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.error == TurnInError.NOT_FOUND
        assert result.message == MSG_BAD_BOOK

    def test_backpack_full_keeps_session(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK)], capacity=1)
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        result = negotiation.choose(player, inventory, "Thrust")
        assert result.error == TurnInError.CAPACITY_EXCEEDED
        assert result.message == MSG_BACKPACK_FULL
        assert result.options == ["Slash", "Thrust"]
        session = negotiation.load_session("p1")
        assert session.round == 0
        assert session.options == ["Slash", "Thrust"]
        assert [i.object_id for i in inventory.items()] == ["book-1"]

        inventory.capacity = 2
        result = negotiation.choose(player, inventory, "Thrust")
        assert result.step == TurnInStep.FINISHED
        assert [i.template_id for i in inventory.items()] == ["oracle_thrust_polearm"]


# ── 세션 ──


class TestSession:
    def test_resumes_in_new_instance(self, artifact_registry, name_resolver, handles, store, player):
        first = TurnInNegotiation(artifact_registry, name_resolver, handles, store)
        inventory = FakeInventory([book(ORACLE_BOOK)])
        first.begin_from_book(player, inventory, inventory.items()[0])
        first.choose(player, inventory, "Slash")

        second = TurnInNegotiation(artifact_registry, name_resolver, handles, store)
        result = second.prompt(player)
        assert result.options == ["Polearm", "Staff"]

    def test_prompt_without_session(self, negotiation, player):
        assert negotiation.prompt(player) is None

    def test_busy_with_other_item(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK), book("Cloudsong", "book-2", 1)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[1])
        assert result.error == TurnInError.SESSION_BUSY
        assert result.options == ["Slash", "Thrust"]
        assert inventory.received == []

    def test_same_item_reprompts(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        result = negotiation.begin_from_book(player, inventory, inventory.items()[0])
        assert result.ok
        assert result.options == ["Slash", "Thrust"]

    def test_abandon(self, negotiation, player):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])

        assert negotiation.abandon("p1")
        assert negotiation.load_session("p1") is None
        assert not negotiation.abandon("p1")

    @pytest.mark.parametrize(
        "round_raw,chosen_raw", [("7", ""), ("2", "Slash"), ("abc", ""), ("-1", "")]
    )
    def test_corrupt_state_resets(self, negotiation, player, store, caplog, round_raw, chosen_raw):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])
        store.set("p1", SESSION_KEY, "round", round_raw)
        store.set("p1", SESSION_KEY, "chosen", chosen_raw)

        session = negotiation.load_session("p1")
        assert session.round == 0
        assert session.chosen == []
        assert "Corrupt turn-in state" in caplog.text

        result = negotiation.prompt(player)
        assert result.options == ["Slash", "Thrust"]

    def test_choose_after_reset(self, negotiation, player, store):
        inventory = FakeInventory([book(ORACLE_BOOK)])
        negotiation.begin_from_book(player, inventory, inventory.items()[0])
        negotiation.choose(player, inventory, "Slash")
        store.set("p1", SESSION_KEY, "round", "9")

        result = negotiation.choose(player, inventory, "Thrust")
        assert result.step == TurnInStep.FINISHED
        assert result.granted.template_id == "oracle_thrust_polearm"


# ── 원본 아이템 ──


class TestSourceItem:
    def test_removes_exact_object(self, negotiation, player):
        inventory = FakeInventory(
            [book(ORACLE_BOOK, "book-1", 0), book(ORACLE_BOOK, "book-2", 1)]
        )
        negotiation.begin_from_book(player, inventory, inventory.items()[1])
        negotiation.choose(player, inventory, "Thrust")

        remaining = [i.object_id for i in inventory.items() if i.object_type == ObjectType.MAGICAL]
        assert remaining == ["book-1"]

    def test_version_swap_keeps_progress(self, negotiation, player):
        owned = InventoryItem(
            object_id="art-1",
            template_id="oracle_slash_polearm",
            name="Traldor's Oracle",
            object_type=ObjectType.ARTIFACT,
            slot=3,
            artifact_id="Traldor's Oracle",
            experience=123,
            artifact_level=4,
        )
        inventory = FakeInventory([owned])

        result = negotiation.begin_from_artifact(player, inventory, owned)
        assert result.options == ["Slash", "Thrust"]
        result = negotiation.choose(player, inventory, "Thrust")

        assert result.granted.template_id == "oracle_thrust_polearm"
        template, experience, level = inventory.received[0]
        assert (experience, level) == (123, 4)
        assert [i.object_id for i in inventory.items()] == ["new-1"]

    def test_single_version_artifact_not_swapped(self, negotiation, player):
        owned = InventoryItem(
            object_id="art-1",
            template_id="cloudsong_cloak",
            name="Cloudsong",
            object_type=ObjectType.ARTIFACT,
            artifact_id="Cloudsong",
            experience=50,
        )
        inventory = FakeInventory([owned])

        result = negotiation.begin_from_artifact(player, inventory, owned)
        assert result.error == TurnInError.NO_VERSIONS
        assert result.message == MSG_NO_SWAP.format(artifact="Cloudsong", player="Kael")
        assert inventory.received == []
        assert inventory.items() == [owned]
        assert negotiation.load_session("p1") is None

    def test_unknown_artifact_item(self, negotiation, player):
        junk = InventoryItem("o1", "bread", "Bread")
        result = negotiation.begin_from_artifact(player, FakeInventory([junk]), junk)
        assert result.error == TurnInError.NOT_FOUND


def test_concurrent_choices_grant_once(negotiation, player):
    inventory = FakeInventory([book(ORACLE_BOOK)])
    negotiation.begin_from_book(player, inventory, inventory.items()[0])

    results = []
    barrier = threading.Barrier(2)

    def pick():
        barrier.wait()
        results.append(negotiation.choose(player, inventory, "Thrust"))

    threads = [threading.Thread(target=pick) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(inventory.received) == 1
    assert sorted(r.step for r in results) == [TurnInStep.FINISHED, TurnInStep.AWAITING_ITEM]

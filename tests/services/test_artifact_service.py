"""ArtifactService 통합 테스트 (인메모리 SQLite + EventBus)"""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, event as sa_event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.artifact.enums import TurnInError
from src.core.artifact.handles import QuestHandleRegistry
from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.source import JsonArtifactSource
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.db.artifact_source import SqlArtifactSource
from src.db.models import (
    ArtifactModel,
    ArtifactVersionModel,
    Base,
    InventoryItemModel,
    PlayerModel,
    QuestProgressModel,
)
from src.services.artifact_service import ArtifactService
from src.services.quest_handles import register_artifact_handles

ARTIFACT_SEED_PATH = Path("src/data/artifacts.json")


def _capture(bus: EventBus, event_type: str) -> list[GameEvent]:
    captured: list[GameEvent] = []
    bus.subscribe(event_type, captured.append)
    return captured


@pytest.fixture()
def setup():
    """인메모리 DB + EventBus + ArtifactService (seed 동기화 완료)"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @sa_event.listens_for(engine, "connect")
    def _set_fk(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine)
    db = session_factory()
    bus = EventBus()

    registry = ArtifactRegistry(SqlArtifactSource(session_factory))
    handles = QuestHandleRegistry()
    service = ArtifactService(db, bus, registry, NameResolver(registry), handles)
    loaded = _capture(bus, EventTypes.ARTIFACTS_LOADED)
    service.sync_seed_data(JsonArtifactSource(ARTIFACT_SEED_PATH))
    register_artifact_handles(db, registry, handles)

    db.add_all(
        [
            PlayerModel(player_id="p1", name="Kael", character_class=1, realm=1, region=51, x=100, y=100),
            PlayerModel(player_id="p2", name="Mira", character_class=5, realm=1, region=51, x=10000, y=0),
            PlayerModel(player_id="p3", name="Toma", character_class=1, realm=1, region=99, x=0, y=0),
        ]
    )
    db.commit()

    yield service, db, bus, loaded
    db.close()


def _scalars_item(db, object_id="art-1", experience=0, level=0, equipped=True, slot=0):
    db.add(
        InventoryItemModel(
            object_id=object_id,
            player_id="p1",
            template_id="scalars_leather",
            name="Maddening Scalars (Leather)",
            object_type="artifact",
            slot=slot,
            artifact_id="Maddening Scalars",
            experience=experience,
            artifact_level=level,
            equipped=equipped,
        )
    )
    db.commit()


# ── seed 동기화 ──


class TestSeedSync:
    def test_rows_written(self, setup):
        service, db, bus, loaded = setup
        assert db.query(ArtifactModel).count() == 5
        assert db.query(ArtifactVersionModel).count() == 12
        assert service.registry.artifact_ids()[0] == "Cloudsong"

    def test_loaded_event(self, setup):
        service, db, bus, loaded = setup
        assert len(loaded) == 1
        assert loaded[0].data["count"] == 5

    def test_second_sync_adds_nothing(self, setup):
        service, db, bus, loaded = setup
        assert service.sync_seed_data(JsonArtifactSource(ARTIFACT_SEED_PATH)) == 0
        assert db.query(ArtifactVersionModel).count() == 12
        assert len(loaded) == 2
        assert len(service.router.matchers) == 3

    def test_credit_routes_loaded(self, setup):
        service, db, bus, loaded = setup
        assert service.router.resolve("Sobekite Eternal") == "Maddening Scalars"


# ── 조회 ──


class TestQueries:
    def test_list_by_zone(self, setup):
        service, *_ = setup
        assert [a.artifact_id for a in service.list_artifacts("Stygian Delta")] == [
            "Tartaros' Gift",
            "Traldor's Oracle",
        ]
        assert len(service.list_artifacts()) == 5

    def test_resolve_name(self, setup):
        service, *_ = setup
        assert service.resolve_name("the maddening scalars") == "Maddening Scalars"
        assert service.resolve_name("Excalibur") is None

    def test_versions_for_player(self, setup):
        service, *_ = setup
        assert list(service.versions_for("Traldor's Oracle", "p2")) == ["Slash;Staff"]

    def test_versions_for_unknown_player(self, setup):
        service, *_ = setup
        with pytest.raises(ValueError):
            service.versions_for("Traldor's Oracle", "ghost")

    def test_level_requirements(self, setup):
        service, *_ = setup
        assert service.level_requirements("Traldor's Oracle")[12] == 6

    def test_can_receive(self, setup):
        service, db, *_ = setup
        assert service.can_receive("p1", "Maddening Scalars")
        _scalars_item(db)
        assert not service.can_receive("p1", "Maddening Scalars")
        assert not service.can_receive("ghost", "Maddening Scalars")


# ── 스크롤 ──


class TestScrolls:
    def _give_pages(self, service, *pages):
        for page in pages:
            assert service.give_scroll("p1", "Maddening Scalars", page)
        return {i.name: i for i in service.inventory_for("p1").items()}

    def test_give_scroll(self, setup):
        service, *_ = setup
        items = self._give_pages(service, 2)
        scroll = items["Scalars, Page 2 of 3"]
        assert scroll.artifact_id == "Maddening Scalars"
        assert service.is_artifact_scroll(scroll)

    def test_give_scroll_unknown_artifact(self, setup):
        service, *_ = setup
        with pytest.raises(ValueError):
            service.give_scroll("p1", "Excalibur", 1)

    def test_combine_pair(self, setup):
        service, db, bus, _ = setup
        combined = _capture(bus, EventTypes.SCROLLS_COMBINED)
        items = self._give_pages(service, 1, 2)

        outcome = service.combine(
            "p1", items["Scalars, Page 1 of 3"].object_id, items["Scalars, Page 2 of 3"].object_id
        )
        assert outcome.ok
        assert not outcome.combination.became_book
        names = [i.name for i in service.inventory_for("p1").items()]
        assert names == ["Scalars, Pages 1 and 2 of 3"]
        assert combined[0].data["pages"] == 3

    def test_combine_into_book(self, setup):
        service, *_ = setup
        items = self._give_pages(service, 1, 2, 3)
        service.combine(
            "p1", items["Scalars, Page 1 of 3"].object_id, items["Scalars, Page 3 of 3"].object_id
        )
        items = {i.name: i for i in service.inventory_for("p1").items()}

        outcome = service.combine(
            "p1",
            items["Scalars, Pages 1 and 3 of 3"].object_id,
            items["Scalars, Page 2 of 3"].object_id,
        )
        assert outcome.combination.became_book
        [book] = service.inventory_for("p1").items()
        assert book.name == "Scalars"
        assert book.price == 5 * 100 * 100

    def test_combine_invalid(self, setup):
        service, *_ = setup
        service.give_scroll("p1", "Maddening Scalars", 1)
        service.give_scroll("p1", "Maddening Scalars", 1)
        a, b = service.inventory_for("p1").items()

        outcome = service.combine("p1", a.object_id, b.object_id)
        assert outcome.error == TurnInError.INVALID_COMBINATION
        assert len(service.inventory_for("p1").items()) == 2

    def test_combine_missing_item(self, setup):
        service, *_ = setup
        service.give_scroll("p1", "Maddening Scalars", 1)
        [a] = service.inventory_for("p1").items()
        assert service.combine("p1", a.object_id, "nope").error == TurnInError.NOT_FOUND

    def test_combine_with_itself(self, setup):
        service, *_ = setup
        service.give_scroll("p1", "Maddening Scalars", 1)
        [a] = service.inventory_for("p1").items()
        outcome = service.combine("p1", a.object_id, a.object_id)
        assert outcome.error == TurnInError.INVALID_COMBINATION
        assert [i.object_id for i in service.inventory_for("p1").items()] == [a.object_id]


# ── 인카운터 크레딧 ──


class TestEncounterCredit:
    def _kill(self, bus, name, region=51, x=0, y=0):
        bus.emit(
            GameEvent(
                event_type=EventTypes.NPC_DIED,
                data={"npc_name": name, "region": region, "x": x, "y": y},
                source="world",
            )
        )

    def test_players_in_radius_credited(self, setup):
        service, db, bus, _ = setup
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)

        self._kill(bus, "Sobekite Eternal")

        assert [e.data["player_id"] for e in granted] == ["p1"]
        row = db.get(QuestProgressModel, ("p1", "MaddeningScalarsEncounter"))
        assert row.finished_count == 1
        assert db.get(QuestProgressModel, ("p2", "MaddeningScalarsEncounter")) is None
        assert db.get(QuestProgressModel, ("p3", "MaddeningScalarsEncounter")) is None

    def test_credit_once(self, setup):
        service, db, bus, _ = setup
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)
        self._kill(bus, "Sobekite Eternal")
        self._kill(bus, "Sobekite Eternal")
        assert len(granted) == 1

    def test_holder_of_artifact_skipped(self, setup):
        service, db, bus, _ = setup
        _scalars_item(db)
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)
        self._kill(bus, "Sobekite Eternal")
        assert granted == []

    def test_fuzzy_route(self, setup):
        service, db, bus, _ = setup
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)
        self._kill(bus, "Traldor the Lost")
        assert granted[0].data["artifact_id"] == "Traldor's Oracle"

    def test_region_bound_route(self, setup):
        service, db, bus, _ = setup
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)
        self._kill(bus, "Aerus Cloudsinger", region=51)
        assert granted == []

    def test_unrelated_npc(self, setup):
        service, db, bus, _ = setup
        granted = _capture(bus, EventTypes.ENCOUNTER_CREDIT_GRANTED)
        self._kill(bus, "Goblin")
        assert granted == []


# ── 경험치 ──


class TestExperience:
    def _xp(self, bus, base, source="npc", player_id="p1"):
        bus.emit(
            GameEvent(
                event_type=EventTypes.EXPERIENCE_GAINED,
                data={"player_id": player_id, "base": base, "source": source},
                source="combat",
            )
        )

    def test_equipped_artifact_levels(self, setup):
        service, db, bus, _ = setup
        _scalars_item(db, experience=49_999_000)
        gained = _capture(bus, EventTypes.ARTIFACT_EXPERIENCE_GAINED)
        levels = _capture(bus, EventTypes.ARTIFACT_LEVEL_GAINED)

        self._xp(bus, 1000)

        row = db.get(InventoryItemModel, "art-1")
        assert row.experience == 50_000_000
        assert row.artifact_level == 1
        assert gained[0].data["gained"] == 1000
        assert [e.data["level"] for e in levels] == [1]

    def test_bonus_parts_summed(self, setup):
        service, db, bus, _ = setup
        _scalars_item(db)
        bus.emit(
            GameEvent(
                event_type=EventTypes.EXPERIENCE_GAINED,
                data={"player_id": "p1", "base": 100, "camp": 10, "group": 20, "outpost": 5, "source": "player"},
                source="combat",
            )
        )
        assert db.get(InventoryItemModel, "art-1").experience == 135

    def test_unequipped_ignored(self, setup):
        service, db, bus, _ = setup
        _scalars_item(db, equipped=False)
        self._xp(bus, 1000)
        assert db.get(InventoryItemModel, "art-1").experience == 0

    def test_other_source_ignored(self, setup):
        service, db, bus, _ = setup
        _scalars_item(db)
        gained = _capture(bus, EventTypes.ARTIFACT_EXPERIENCE_GAINED)
        self._xp(bus, 1000, source="quest")
        assert gained == []
        assert db.get(InventoryItemModel, "art-1").experience == 0

    def test_guild_buff(self, setup):
        service, db, bus, _ = setup
        db.get(PlayerModel, "p1").guild_artifact_xp_buff = True
        db.commit()
        _scalars_item(db)
        self._xp(bus, 1000)
        assert db.get(InventoryItemModel, "art-1").experience == 1050

    def test_unknown_player_ignored(self, setup):
        service, db, bus, _ = setup
        gained = _capture(bus, EventTypes.ARTIFACT_EXPERIENCE_GAINED)
        self._xp(bus, 1000, player_id="ghost")
        assert gained == []

    def test_progress(self, setup):
        service, db, *_ = setup
        _scalars_item(db, experience=75_000_000, level=1)
        assert service.progress("p1", "art-1") == 50
        with pytest.raises(ValueError):
            service.progress("p1", "nope")


class TestReuse:
    def test_reuse_timer(self, setup):
        service, *_ = setup
        assert service.reuse_remaining("p1", "cloudsong_cloak") == 0
        service.start_reuse("p1", "cloudsong_cloak", 60)
        assert 0 < service.reuse_remaining("p1", "cloudsong_cloak") <= 60

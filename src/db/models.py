"""SQLAlchemy declarative base for all ORM models."""

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""


# ── 정적 데이터 (seed → DB → 레지스트리) ──────────────────


class ArtifactModel(Base):
    """ORM model for artifact definitions."""

    __tablename__ = "artifacts"

    artifact_id: Mapped[str] = mapped_column(String, primary_key=True)
    zone: Mapped[str] = mapped_column(String, default="")
    book_id: Mapped[str] = mapped_column(String, default="")

    scroll1: Mapped[str] = mapped_column(String, default="")
    scroll2: Mapped[str] = mapped_column(String, default="")
    scroll3: Mapped[str] = mapped_column(String, default="")
    scroll12: Mapped[str] = mapped_column(String, default="")
    scroll13: Mapped[str] = mapped_column(String, default="")
    scroll23: Mapped[str] = mapped_column(String, default="")

    scroll_model1: Mapped[int] = mapped_column(Integer, default=499)
    scroll_model2: Mapped[int] = mapped_column(Integer, default=499)
    book_model: Mapped[int] = mapped_column(Integer, default=499)

    xp_rate: Mapped[int] = mapped_column(Integer, default=0)
    encounter_id: Mapped[str] = mapped_column(String, default="")
    quest_id: Mapped[str] = mapped_column(String, default="")
    scholar_id: Mapped[str] = mapped_column(String, default="")
    credit: Mapped[str] = mapped_column(String, default="")


class ArtifactVersionModel(Base):
    """ORM model for artifact versions (artifact × item template)."""

    __tablename__ = "artifact_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artifact_id: Mapped[str] = mapped_column(
        String, ForeignKey("artifacts.artifact_id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[str] = mapped_column(String, default="")
    item_id: Mapped[str] = mapped_column(String, nullable=False)
    realm: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("artifact_id", "item_id", name="uq_artifact_version_item"),
        Index("idx_version_artifact", "artifact_id"),
    )


class ArtifactBonusModel(Base):
    """ORM model for artifact bonus level requirements."""

    __tablename__ = "artifact_bonuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artifact_id: Mapped[str] = mapped_column(
        String, ForeignKey("artifacts.artifact_id", ondelete="CASCADE"), nullable=False
    )
    bonus_id: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (UniqueConstraint("artifact_id", "bonus_id", name="uq_artifact_bonus"),)


class ItemTemplateModel(Base):
    """ORM model for item templates."""

    __tablename__ = "item_templates"

    template_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    allowed_classes: Mapped[list] = mapped_column(JSON, default=list)
    realm: Mapped[int] = mapped_column(Integer, default=0)
    model: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[int] = mapped_column(Integer, default=0)


# ── 플레이어 상태 ──────────────────────────────────────


class PlayerModel(Base):
    """ORM model for players."""

    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    character_class: Mapped[int] = mapped_column(Integer, default=0)
    realm: Mapped[int] = mapped_column(Integer, default=0)

    # 위치 (크레딧 반경 계산용)
    region: Mapped[int] = mapped_column(Integer, default=0)
    x: Mapped[int] = mapped_column(Integer, default=0)
    y: Mapped[int] = mapped_column(Integer, default=0)

    is_praying: Mapped[bool] = mapped_column(Boolean, default=False)
    guild_artifact_xp_buff: Mapped[bool] = mapped_column(Boolean, default=False)


class InventoryItemModel(Base):
    """ORM model for items in a player's backpack."""

    __tablename__ = "inventory_items"

    object_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    object_type: Mapped[str] = mapped_column(String, default="generic")
    slot: Mapped[int] = mapped_column(Integer, default=-1)
    model: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[int] = mapped_column(Integer, default=0)

    artifact_id: Mapped[str | None] = mapped_column(String, nullable=True)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    artifact_level: Mapped[int] = mapped_column(Integer, default=0)
    equipped: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (Index("idx_inventory_player", "player_id", "slot"),)


# ── 퀘스트 저장소 ──────────────────────────────────────


class QuestPropertyModel(Base):
    """Generic key/value quest property (player × session × key)."""

    __tablename__ = "quest_properties"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    session_key: Mapped[str] = mapped_column(String, primary_key=True)
    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")


class QuestProgressModel(Base):
    """Quest/encounter state per player. status: active | finished"""

    __tablename__ = "quest_progress"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    quest_id: Mapped[str] = mapped_column(String, primary_key=True)
    status: Mapped[str] = mapped_column(String, default="active")
    finished_count: Mapped[int] = mapped_column(Integer, default=0)

"""아티팩트 도메인 모델 (DB 무관)"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import ObjectType, PageSet

# 스크롤 가격 단위 (동화 기준)
COPPER_PER_GOLD = 100 * 100

SCROLL_TEMPLATE_ID = "artifact_scroll"
DEFAULT_SCROLL_MODEL = 499


@dataclass(frozen=True)
class ArtifactDefinition:
    """아티팩트 정의. 불변이며 리로드 시 통째로 교체."""

    artifact_id: str  # "Maddening Scalars"
    zone: str = ""
    book_id: str = ""  # 완성된 책 이름

    # 페이지 이름: 단일 3종 + 2장 결합 3종
    scroll1: str = ""
    scroll2: str = ""
    scroll3: str = ""
    scroll12: str = ""
    scroll13: str = ""
    scroll23: str = ""

    scroll_model1: int = DEFAULT_SCROLL_MODEL
    scroll_model2: int = DEFAULT_SCROLL_MODEL
    book_model: int = DEFAULT_SCROLL_MODEL

    xp_rate: int = 0
    encounter_id: str = ""
    quest_id: str = ""
    scholar_id: str = ""  # CSV
    credit: str = ""  # 인카운터 크레딧 토큰 이름

    @property
    def scholars(self) -> list[str]:
        return [s.strip() for s in self.scholar_id.split(",") if s.strip()]

    def page_names(self) -> dict[PageSet, str]:
        """PageSet → 표시 이름 (비어 있는 항목 제외)."""
        table = {
            PageSet.PAGE1: self.scroll1,
            PageSet.PAGE2: self.scroll2,
            PageSet.PAGE3: self.scroll3,
            PageSet.PAGE1 | PageSet.PAGE2: self.scroll12,
            PageSet.PAGE1 | PageSet.PAGE3: self.scroll13,
            PageSet.PAGE2 | PageSet.PAGE3: self.scroll23,
            PageSet.ALL_PAGES: self.book_id,
        }
        return {pages: name for pages, name in table.items() if name}


@dataclass(frozen=True)
class ArtifactVersion:
    """(artifact_id, version) → item template. realm 0 = 전 렐름."""

    artifact_id: str
    version: str  # "Slash;Polearm;Strength" 또는 ""
    item_id: str
    realm: int = 0


@dataclass(frozen=True)
class ArtifactLevelBonus:
    artifact_id: str
    bonus_id: int
    level: int


@dataclass(frozen=True)
class ItemTemplate:
    """아이템 템플릿 참조. allowed_classes가 비어 있으면 전 클래스 허용."""

    template_id: str
    name: str
    allowed_classes: tuple[int, ...] = ()
    realm: int = 0
    model: int = 0
    price: int = 0

    def allows_class(self, character_class: int) -> bool:
        return not self.allowed_classes or character_class in self.allowed_classes


@dataclass
class InventoryItem:
    """플레이어 인벤토리의 아이템 개체. 이 코어는 참조만 한다."""

    object_id: str
    template_id: str
    name: str
    object_type: ObjectType = ObjectType.GENERIC
    slot: int = -1
    model: int = 0
    price: int = 0

    # 스크롤 ↔ 아티팩트 명시적 연결 (있으면 이름 매칭보다 우선)
    artifact_id: Optional[str] = None

    # 아티팩트 아이템 전용
    experience: int = 0
    artifact_level: int = 0


@dataclass
class ArtifactInstance:
    """장착된 아티팩트의 경험치 상태."""

    artifact_id: str
    name: str
    experience: int = 0
    level: int = 0
    object_id: Optional[str] = None


@dataclass(frozen=True)
class ScrollBlueprint:
    """결합 결과로 만들어질 스크롤/책. 실제 생성은 인벤토리 측 책임."""

    artifact_id: str
    pages: PageSet
    name: str
    model: int
    price: int
    template_id: str = SCROLL_TEMPLATE_ID

    @property
    def is_book(self) -> bool:
        return self.pages == PageSet.ALL_PAGES


@dataclass
class PlayerProfile:
    """코어가 필요로 하는 플레이어 정보."""

    player_id: str
    name: str
    character_class: int = 0
    realm: int = 0
    is_praying: bool = False
    guild_artifact_xp_buff: bool = False

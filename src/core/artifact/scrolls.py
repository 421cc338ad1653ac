"""스크롤 결합 엔진

각 스크롤은 3장 중 일부 페이지(PageSet 비트셋)를 나타낸다.
같은 아티팩트의 겹치지 않는 두 스크롤만 합칠 수 있고, 결과는 비트 OR.
세 장이 모두 모이면 완성된 책이 된다.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from .enums import ObjectType, PageSet
from .models import COPPER_PER_GOLD, InventoryItem, ScrollBlueprint
from .registry import ArtifactRegistry

logger = logging.getLogger(__name__)

# 페이지 수 → 가격 (골드)
PRICE_GOLD_BY_PAGES = {1: 2, 2: 4, 3: 5}

_SENTINELS = (PageSet.NO_PAGE, PageSet.ALL_PAGES)


class Combination(NamedTuple):
    blueprint: Optional[ScrollBlueprint]
    artifact_id: Optional[str]
    became_book: bool


def page_count(pages: PageSet) -> int:
    return bin(int(pages)).count("1")


class ScrollCombinationEngine:
    def __init__(self, registry: ArtifactRegistry) -> None:
        self._registry = registry

    def get_page_numbers(self, item: Optional[InventoryItem]) -> tuple[PageSet, Optional[str]]:
        """아이템이 나타내는 페이지와 아티팩트.

        아이템에 artifact_id가 있으면 그 정의의 페이지 이름만 본다.
        없으면 이름 인덱스로 찾는다.
        """
        if item is None or item.object_type != ObjectType.MAGICAL:
            return PageSet.NO_PAGE, None

        if item.artifact_id:
            art = self._registry.get(item.artifact_id)
            if art is None:
                return PageSet.NO_PAGE, None
            for pages, name in art.page_names().items():
                if pages == PageSet.ALL_PAGES:
                    if name.lower() == item.name.lower():
                        return pages, art.artifact_id
                elif name == item.name:
                    return pages, art.artifact_id
            return PageSet.NO_PAGE, art.artifact_id

        hit = self._registry.classify_page_name(item.name)
        if hit is None:
            return PageSet.NO_PAGE, None
        return hit

    def is_artifact_scroll(self, item: Optional[InventoryItem]) -> bool:
        """한두 장짜리 스크롤이면 True. 완성된 책은 스크롤이 아니다."""
        pages = self.get_page_numbers(item)[0]
        return pages not in (PageSet.NO_PAGE, PageSet.ALL_PAGES)

    def can_combine(self, item_a: InventoryItem, item_b: InventoryItem) -> bool:
        pages_a, art_a = self.get_page_numbers(item_a)
        pages_b, art_b = self.get_page_numbers(item_b)
        return self._combinable(pages_a, art_a, pages_b, art_b)

    @staticmethod
    def _combinable(
        pages_a: PageSet, art_a: Optional[str], pages_b: PageSet, art_b: Optional[str]
    ) -> bool:
        if pages_a in _SENTINELS or pages_b in _SENTINELS:
            return False
        if art_a is None or art_a != art_b:
            return False
        return (pages_a & pages_b) == PageSet.NO_PAGE

    def combine(self, item_a: InventoryItem, item_b: InventoryItem) -> Combination:
        """두 스크롤 결합. 불가능하면 Combination(None, None, False).

        아이템 생성과 원본 제거는 호출자 몫이다.
        """
        pages_a, art_a = self.get_page_numbers(item_a)
        pages_b, art_b = self.get_page_numbers(item_b)
        if not self._combinable(pages_a, art_a, pages_b, art_b):
            return Combination(None, None, False)

        merged = PageSet(pages_a | pages_b)
        blueprint = self.blueprint(art_a, merged)
        if blueprint is None:
            return Combination(None, None, False)
        return Combination(blueprint, art_a, blueprint.is_book)

    def create_scroll(self, artifact_id: str, page_number: int) -> Optional[ScrollBlueprint]:
        """단일 페이지 스크롤 (1..3)"""
        if page_number not in (1, 2, 3):
            raise ValueError(f"Page number must be 1..3, got {page_number}")
        return self.blueprint(artifact_id, PageSet(1 << (page_number - 1)))

    def blueprint(self, artifact_id: Optional[str], pages: PageSet) -> Optional[ScrollBlueprint]:
        art = self._registry.get(artifact_id)
        if art is None or pages == PageSet.NO_PAGE:
            return None
        name = art.page_names().get(pages)
        if not name:
            logger.warning("Artifact %s has no name for pages %s", artifact_id, pages)
            return None

        count = page_count(pages)
        if count == 1:
            model = art.scroll_model1
        elif count == 2:
            model = art.scroll_model2
        else:
            model = art.book_model
        return ScrollBlueprint(
            artifact_id=art.artifact_id,
            pages=pages,
            name=name,
            model=model,
            price=PRICE_GOLD_BY_PAGES[count] * COPPER_PER_GOLD,
        )

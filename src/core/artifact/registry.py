"""아티팩트 레지스트리 — 정의/버전/보너스 인덱스

로드는 새 인덱스를 완전히 만든 뒤 한 번에 교체한다.
조회는 읽기 락, 교체는 쓰기 락 아래에서 일어나므로
읽는 쪽은 절반만 만들어진 인덱스를 볼 수 없다.
"""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .enums import BONUS_SLOT_COUNT, ObjectType, PageSet
from .models import (
    ArtifactDefinition,
    ArtifactLevelBonus,
    ArtifactVersion,
    InventoryItem,
    ItemTemplate,
)
from .ports import ArtifactDataSource

logger = logging.getLogger(__name__)

ARMOR_KEYWORDS = ("Cloth", "Leather", "Studded", "Reinforced", "Scale", "Chain", "Plate")
ROLE_KEYWORDS = ("Caster", "Melee")

_PAREN_RE = re.compile(r"\(([^)]+)\)")


class RWLock:
    """읽기 공유 / 쓰기 배타 락. 대기 중인 writer가 있으면 새 reader는 기다린다."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class _Index:
    artifacts: dict[str, ArtifactDefinition] = field(default_factory=dict)
    versions: dict[str, list[ArtifactVersion]] = field(default_factory=dict)
    bonuses: list[ArtifactLevelBonus] = field(default_factory=list)
    templates: dict[str, ItemTemplate] = field(default_factory=dict)
    item_to_artifact: dict[str, str] = field(default_factory=dict)
    # 스크롤 이름(정확히 일치) → (페이지, artifact_id)
    scrolls_by_name: dict[str, tuple[PageSet, str]] = field(default_factory=dict)
    # 책 이름(소문자) → artifact_id
    books_by_name: dict[str, str] = field(default_factory=dict)


def infer_version_label(template: ItemTemplate) -> str:
    """버전 키가 비어 있을 때 UI용 라벨 추론.

    순서: 이름의 괄호 내용 → 방어구/역할 키워드 → id의 '_' 접미사 → 이름.
    """
    name = template.name or ""

    m = _PAREN_RE.search(name)
    if m and m.group(1).strip():
        return m.group(1).strip()

    lowered = name.lower()
    for keyword in ARMOR_KEYWORDS + ROLE_KEYWORDS:
        if keyword.lower() in lowered:
            return keyword

    parts = (template.template_id or "").split("_")
    if len(parts) > 1 and parts[-1]:
        return parts[-1]

    return name or "Version"


class ArtifactRegistry:
    """아티팩트 정의 저장소. 단일 인스턴스로 만들어 필요한 곳에 주입한다."""

    def __init__(self, source: ArtifactDataSource) -> None:
        self._source = source
        self._index = _Index()
        self._rw = RWLock()
        self._load_lock = threading.Lock()
        self._loaded = False
        self._generation = 0

    # === 로드 ===

    def load(self) -> int:
        """최초 1회 로드. 이미 로드됐으면 다시 읽지 않는다. 반환: 아티팩트 수."""
        self.ensure_loaded()
        return len(self._index.artifacts)

    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._load_lock:
            if self._loaded:
                return
            self._rebuild()

    def reload(self) -> int:
        """강제 재로드. 반환: 아티팩트 수."""
        with self._load_lock:
            self._rebuild()
        return len(self._index.artifacts)

    def _rebuild(self) -> None:
        index = self._build_index(
            self._source.load_artifacts(),
            self._source.load_versions(),
            self._source.load_bonuses(),
            self._source.load_templates(),
        )
        with self._rw.write_locked():
            self._index = index
            self._generation += 1
        self._loaded = True
        logger.info(
            "%d artifacts loaded (%d versions, %d bonuses, %d templates)",
            len(index.artifacts),
            sum(len(v) for v in index.versions.values()),
            len(index.bonuses),
            len(index.templates),
        )

    @staticmethod
    def _build_index(
        artifacts: Iterable[ArtifactDefinition],
        versions: Iterable[ArtifactVersion],
        bonuses: Iterable[ArtifactLevelBonus],
        templates: Iterable[ItemTemplate],
    ) -> _Index:
        by_id: dict[str, ArtifactDefinition] = {}
        for art in artifacts:
            if art.artifact_id in by_id:
                logger.warning("Duplicate artifact id: %s", art.artifact_id)
            by_id[art.artifact_id] = art

        by_artifact: dict[str, list[ArtifactVersion]] = {}
        item_to_artifact: dict[str, str] = {}
        for version in versions:
            by_artifact.setdefault(version.artifact_id, []).append(version)
            item_to_artifact.setdefault(version.item_id, version.artifact_id)

        scrolls: dict[str, tuple[PageSet, str]] = {}
        books: dict[str, str] = {}
        for art_id in sorted(by_id):
            for pages, name in by_id[art_id].page_names().items():
                if pages == PageSet.ALL_PAGES:
                    key = name.lower()
                    if key in books and books[key] != art_id:
                        logger.warning(
                            "Book name %r shared by %s and %s", name, books[key], art_id
                        )
                        continue
                    books[key] = art_id
                    continue
                if name in scrolls and scrolls[name][1] != art_id:
                    logger.warning(
                        "Page name %r shared by %s and %s", name, scrolls[name][1], art_id
                    )
                    continue
                scrolls[name] = (pages, art_id)

        return _Index(
            artifacts=by_id,
            versions=by_artifact,
            bonuses=list(bonuses),
            templates={t.template_id: t for t in templates},
            item_to_artifact=item_to_artifact,
            scrolls_by_name=scrolls,
            books_by_name=books,
        )

    def _snapshot(self) -> _Index:
        self.ensure_loaded()
        with self._rw.read_locked():
            return self._index

    @property
    def generation(self) -> int:
        """로드될 때마다 증가. 파생 인덱스의 재빌드 판단용."""
        return self._generation

    # === 조회 ===

    def get(self, artifact_id: Optional[str]) -> Optional[ArtifactDefinition]:
        if artifact_id is None:
            return None
        return self._snapshot().artifacts.get(artifact_id)

    def get_all(self) -> list[ArtifactDefinition]:
        index = self._snapshot()
        return [index.artifacts[k] for k in sorted(index.artifacts)]

    def artifact_ids(self) -> list[str]:
        return sorted(self._snapshot().artifacts)

    def get_by_zone(self, zone: Optional[str]) -> list[ArtifactDefinition]:
        if zone is None:
            return []
        return [a for a in self.get_all() if a.zone == zone]

    def get_scholars(self, artifact_id: str) -> list[str]:
        art = self.get(artifact_id)
        return art.scholars if art else []

    def get_template(self, template_id: str) -> Optional[ItemTemplate]:
        return self._snapshot().templates.get(template_id)

    def get_artifact_id_from_item_id(self, item_id: Optional[str]) -> Optional[str]:
        if item_id is None:
            return None
        return self._snapshot().item_to_artifact.get(item_id)

    def get_artifact_id(self, book_id: Optional[str]) -> Optional[str]:
        """완성된 책 이름(정확히 일치) → artifact_id"""
        if not book_id:
            return None
        for art in self._snapshot().artifacts.values():
            if art.book_id == book_id:
                return art.artifact_id
        return None

    def classify_page_name(self, name: Optional[str]) -> Optional[tuple[PageSet, str]]:
        """아이템 이름 → (페이지 비트셋, artifact_id). 스크롤은 정확히, 책은 대소문자 무시."""
        if not name:
            return None
        index = self._snapshot()
        hit = index.scrolls_by_name.get(name)
        if hit is not None:
            return hit
        art_id = index.books_by_name.get(name.lower())
        if art_id is not None:
            return PageSet.ALL_PAGES, art_id
        return None

    def is_artifact(self, item: Optional[InventoryItem]) -> bool:
        if item is None:
            return False
        if item.object_type == ObjectType.ARTIFACT:
            return True
        return item.template_id in self._snapshot().item_to_artifact

    def artifacts_carried(self, items: Iterable[InventoryItem]) -> list[str]:
        """인벤토리 아이템 중 아티팩트 버전에 해당하는 artifact_id 목록"""
        mapping = self._snapshot().item_to_artifact
        return [mapping[i.template_id] for i in items if i.template_id in mapping]

    def has_book(self, items: Iterable[InventoryItem], artifact_id: str) -> bool:
        art = self.get(artifact_id)
        if art is None:
            logger.warning("Can't find book for artifact %r", artifact_id)
            return False
        return any(
            i.object_type == ObjectType.MAGICAL and i.name == art.book_id for i in items
        )

    def get_level_requirements(self, artifact_id: str) -> list[int]:
        """보너스 슬롯별 요구 레벨. 없는 슬롯은 0."""
        requirements = [0] * BONUS_SLOT_COUNT
        for bonus in self._snapshot().bonuses:
            if bonus.artifact_id != artifact_id:
                continue
            if 0 <= bonus.bonus_id < BONUS_SLOT_COUNT:
                requirements[bonus.bonus_id] = bonus.level
            else:
                logger.warning(
                    "Bonus slot %d out of range for %s", bonus.bonus_id, artifact_id
                )
        return requirements

    def get_versions(
        self, artifact_id: Optional[str], character_class: int, realm: int
    ) -> dict[str, ItemTemplate]:
        """클래스/렐름에 맞는 버전 라벨 → 템플릿. 모르는 id면 빈 dict."""
        if artifact_id is None:
            return {}
        index = self._snapshot()
        result: dict[str, ItemTemplate] = {}
        # 턴인 협상은 대소문자를 무시하고 비교한다
        taken: set[str] = set()
        for version in index.versions.get(artifact_id, []):
            if version.realm not in (0, realm):
                continue
            template = index.templates.get(version.item_id)
            if template is None:
                logger.warning("Artifact item template %r is missing", version.item_id)
                continue
            if not template.allows_class(character_class):
                continue

            label = version.version.strip() or infer_version_label(template)
            unique = label
            n = 2
            while unique.lower() in taken:
                unique = f"{label} #{n}"
                n += 1
            taken.add(unique.lower())
            result[unique] = template
        return result

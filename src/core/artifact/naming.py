"""이름 → artifact_id 해석

플레이어가 보는 문자열(책 제목, 크레딧 토큰, 스크롤 이름)은
대소문자, 구두점, 발음 구별 기호, 부분 이름이 제각각이다.
정규화 후 정확 일치 → 동의어 → 부분 문자열 → 토큰 부분집합 순으로 찾는다.
"""

from __future__ import annotations

import logging
import re
import threading
import unicodedata
from dataclasses import dataclass, field
from typing import Optional

from .registry import ArtifactRegistry

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]|_")
_NON_ALNUM_RE = re.compile(r"[\W_]+")

# 과거 데이터에서 쓰이던 별칭 (정규화 키 → 표기)
HISTORICAL_ALIASES = {
    "tartaros gift": "Tartaros' Gift",
    "traldors oracle": "Traldor's Oracle",
    "winged helm": "The Winged Helm",
    "arms of the winds": "Arms of the Winds",
}

# 완성된 책 제목 → artifact_id
CURATED_BOOK_TITLES = {
    "Alvarus' Bundled Letters": "Alvarus' Leggings",
    "Anthos' Fish Skin": "Arms of the Winds",
    "Remus' Story": "Aten's Shield",
    "King's Vase": "Band of Stars",
    "Battler": "Battler",
    "Oglidarsh the Half-Giant's Story": "Belt of Oglidarsh",
    "Belt of the Moon": "Belt of the Moon",
    "Belt of the Sun": "Belt of the Sun",
    "An Apprentice's Works": "Bracelet of Zo'arkat",
    "Carved Stone Tablet": "Braggart's Bow",
    "Bruiser": "Bruiser",
    "Arbiter's Personal Papers": "Ceremonial Bracers",
    "Cloudsong": "Cloudsong",
    "Tyrus' Epic Poem": "Crocodile Tear Ring",
    "Marricus' Journal": "Crocodile's Tooth Dagger",
    "Advisor's Personal Log": "Crown of Zahur",
    "Damyon's Journal": "Cyclops Eye Shield",
    "Loukas' Journal": "Dream Sphere",
    "Crafter's Pages on Lightstones": "Eerie Darkness Stone",
    "Complete Egg of Youth Scroll": "Egg of Youth",
    "Eirene's Journal": "Eirene's Hauberk",
    "Enyalios' Boots": "Enyalio's Boots",
    "Erinys' Charm": "Erinys Charm",
    "Eternal Plant Guide": "Eternal Plant",
    "King Kiron's Notes to Cyrell": "Flamedancer's Boots",
    "Flask": "A Flask",
    "Fool's Bow Tale": "Fool's Bow",
    "Foppish Sleeves": "Foppish Sleeves",
    "Book of Lost Memories, complete story": "Gem of Lost Memories",
    "Dianna's Tragic Tale": "Goddess Necklace",
    "Bence's Letters to Helenia": "Golden Scarab Vest",
    "A Love Story": "Guard of Valor",
    "Bellona's Diary": "Harpy Feather Cloak",
    "Vara's Medical Log": "Healer's Embrace",
    "Tarin's Animal Skin": "Jacina's Sash",
    "Kalare's Memoirs": "Kalare's Necklace",
    "Scalars": "Maddening Scalars",
    "Malice's Axe": "Malice's Axe",
    "Mariasha's Wall Section": "Mariasha's Sharkskin Gloves",
    "Nailah's Diary": "Nailah's Robes",
    "Dysis' Tablet": "Night's Shroud Bracelet",
    "Great Hunt, complete story": "Orion's Belt",
    "Phoebus' Harp Tale": "Phoebus Harp Necklace",
    "Journal of Public Notices": "Ring of Dances",
    "Ring of fire": "Ring of Fire",
    "Tribute to Adauron, complete story": "Ring of Unyielding Will",
    "Adnes's Bundled Letters": "Scepter of the Meritorious",
    "Shades of Mist": "Shades of Mist",
    "Shield of Khaos": "Shield of Khaos",
    "Snatcher Tales": "Snatcher",
    "Spear of Kings Tale": "Spear of Kings",
    "Staff of the Gods Tale": "Staff of the Gods",
    "Helenia's Letters to Bence": "Stone of Atlantis",
    "Atlantis' Magic Tablets": "Tablet of Atlantis",
    "Tartaros' Gift": "Tartaros' Gift",
    "History of the Golden Spear": "The Golden Spear",
    "Complete Wooden Triptych": "Scorpion's Tail Ring",
    "Julea's Story": "Snakecharmer's Weapon",
    "Complete Thoughts of Hermes": "Winged Helm",
    "Complete Book of Glyphs": "Traitor's Dagger",
    "Completed Dichotory's Dissertation": "Traldor's Oracle",
    "Wing's Dive": "Wing's Dive",
}


def normalize_name(raw: Optional[str]) -> str:
    """소문자화, 발음 구별 기호 제거, ’ → ', 공백 압축, 선행 "the " 제거.

    같은 입력에 다시 적용해도 결과가 같다.
    """
    if not raw:
        return ""
    s = raw.lower()
    s = unicodedata.normalize("NFD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = unicodedata.normalize("NFC", s)
    s = s.replace("’", "'")
    s = _WS_RE.sub(" ", s).strip()
    while s.startswith("the "):
        s = s[4:].lstrip()
    return s


def strip_punctuation(normalized: str) -> str:
    return _WS_RE.sub(" ", _PUNCT_RE.sub("", normalized)).strip()


def normalize_key(raw: Optional[str]) -> str:
    """엄격한 정규화: normalize_name 후 영숫자 외 전부 제거 (공백 포함)."""
    return _NON_ALNUM_RE.sub("", normalize_name(raw))


@dataclass(frozen=True)
class _NameIndex:
    generation: int
    by_full: dict[str, str] = field(default_factory=dict)
    synonyms: dict[str, str] = field(default_factory=dict)
    # 부분 문자열 검사용: 긴 키부터
    contained_keys: tuple[tuple[str, str], ...] = ()
    tokens: tuple[tuple[str, frozenset[str]], ...] = ()


class NameResolver:
    """레지스트리의 artifact_id 목록을 기반으로 한 이름 해석기.

    인덱스는 첫 사용 시 만들어지고, 레지스트리가 다시 로드되면 재빌드된다.
    """

    def __init__(
        self,
        registry: ArtifactRegistry,
        book_titles: Optional[dict[str, str]] = None,
    ) -> None:
        self._registry = registry
        self._index: Optional[_NameIndex] = None
        self._lock = threading.Lock()
        titles = CURATED_BOOK_TITLES if book_titles is None else book_titles
        self._book_titles = {normalize_key(t): a for t, a in titles.items()}

    def _ensure_index(self) -> _NameIndex:
        self._registry.ensure_loaded()
        index = self._index
        if index is not None and index.generation == self._registry.generation:
            return index
        with self._lock:
            index = self._index
            generation = self._registry.generation
            if index is None or index.generation != generation:
                index = self._build(generation)
                self._index = index
            return index

    def _build(self, generation: int) -> _NameIndex:
        ids = self._registry.artifact_ids()
        by_full: dict[str, str] = {}
        synonyms: dict[str, str] = {}

        normalized = {art_id: normalize_name(art_id) for art_id in ids}
        for art_id, norm in normalized.items():
            by_full.setdefault(norm, art_id)

        last_words: dict[str, list[str]] = {}
        for art_id, norm in normalized.items():
            parts = norm.split(" ")
            if len(parts) >= 2:
                last_words.setdefault(parts[-1], []).append(art_id)
        for word, owners in last_words.items():
            if len(owners) == 1 and not any(
                n.split(" ")[-1] == word for a, n in normalized.items() if a != owners[0]
            ):
                synonyms.setdefault(word, owners[0])

        for art_id, norm in normalized.items():
            bare = strip_punctuation(norm)
            if bare and bare != norm:
                synonyms.setdefault(bare, art_id)

        for key, target in HISTORICAL_ALIASES.items():
            resolved = by_full.get(normalize_name(target))
            if resolved is not None:
                synonyms.setdefault(normalize_name(key), resolved)

        known = {**synonyms, **by_full}
        contained = tuple(sorted(known.items(), key=lambda kv: (-len(kv[0]), kv[0])))
        tokens = tuple(
            (art_id, frozenset(normalized[art_id].split())) for art_id in ids
        )

        logger.debug(
            "Name index built: %d ids, %d synonyms (generation %d)",
            len(by_full),
            len(synonyms),
            generation,
        )
        return _NameIndex(generation, by_full, synonyms, contained, tokens)

    def resolve(self, raw: Optional[str]) -> Optional[str]:
        """자유 형식 문자열 → artifact_id. 못 찾으면 None."""
        norm = normalize_name(raw)
        if not norm:
            return None
        index = self._ensure_index()

        hit = index.by_full.get(norm) or index.synonyms.get(norm)
        if hit is not None:
            return hit

        for key, art_id in index.contained_keys:
            if key and key in norm:
                return art_id

        words = norm.split()
        for art_id, art_tokens in index.tokens:
            if all(w in art_tokens for w in words):
                return art_id

        logger.debug("No artifact matches %r", raw)
        return None

    def resolve_title(self, raw: Optional[str]) -> Optional[str]:
        """책 제목 정확 일치 (엄격한 정규화 기준). 레지스트리에 없는 id는 무시."""
        key = normalize_key(raw)
        if not key:
            return None
        art_id = self._book_titles.get(key)
        if art_id is None:
            return None
        if self._registry.get(art_id) is not None:
            return art_id
        return self._ensure_index().by_full.get(normalize_name(art_id))

    def resolve_book(self, raw: Optional[str]) -> Optional[str]:
        """책 이름 해석: 레지스트리 book_id → 제목 테이블 → 일반 해석 순."""
        return (
            self._registry.get_artifact_id(raw)
            or self.resolve_title(raw)
            or self.resolve(raw)
        )

"""아티팩트 시스템 Core 패키지

레지스트리, 이름 해석, 스크롤 결합, 경험치, 턴인 협상, 크레딧 라우팅.
DB 무관 순수 Python 로직.
"""

from .credit import (
    CreditMatcher,
    CreditRouter,
    grant_artifact_credit,
    grant_bounty_credit,
    has_encounter_credit,
)
from .enums import BonusSlot, ObjectType, PageSet, TurnInError, TurnInStep, XPSource
from .experience import (
    MAX_LEVEL,
    XP_FOR_LEVEL,
    ExperienceProgression,
    ExperienceResult,
    current_level,
    progress_percent,
    total_experience,
)
from .handles import QuestHandleRegistry
from .models import (
    ArtifactDefinition,
    ArtifactInstance,
    ArtifactLevelBonus,
    ArtifactVersion,
    InventoryItem,
    ItemTemplate,
    PlayerProfile,
    ScrollBlueprint,
)
from .naming import CURATED_BOOK_TITLES, NameResolver, normalize_key, normalize_name
from .registry import ArtifactRegistry, infer_version_label
from .reuse import ReuseTimers
from .scrolls import Combination, ScrollCombinationEngine
from .source import JsonArtifactSource
from .turnin import TurnInNegotiation, TurnInResult, TurnInSession

__all__ = [
    "ArtifactDefinition",
    "ArtifactInstance",
    "ArtifactLevelBonus",
    "ArtifactRegistry",
    "ArtifactVersion",
    "BonusSlot",
    "Combination",
    "CreditMatcher",
    "CreditRouter",
    "CURATED_BOOK_TITLES",
    "ExperienceProgression",
    "ExperienceResult",
    "InventoryItem",
    "ItemTemplate",
    "JsonArtifactSource",
    "MAX_LEVEL",
    "NameResolver",
    "ObjectType",
    "PageSet",
    "PlayerProfile",
    "QuestHandleRegistry",
    "ReuseTimers",
    "ScrollBlueprint",
    "ScrollCombinationEngine",
    "TurnInError",
    "TurnInNegotiation",
    "TurnInResult",
    "TurnInSession",
    "TurnInStep",
    "XPSource",
    "XP_FOR_LEVEL",
    "current_level",
    "grant_artifact_credit",
    "grant_bounty_credit",
    "has_encounter_credit",
    "infer_version_label",
    "normalize_key",
    "normalize_name",
    "progress_percent",
    "total_experience",
]

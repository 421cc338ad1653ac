"""아티팩트 관련 열거형"""

from enum import Enum, IntEnum, IntFlag


class PageSet(IntFlag):
    """스크롤 페이지 비트셋. NO_PAGE / ALL_PAGES는 결합 불가 센티널."""

    NO_PAGE = 0x0
    PAGE1 = 0x1
    PAGE2 = 0x2
    PAGE3 = 0x4
    ALL_PAGES = 0x7


class TurnInStep(IntEnum):
    AWAITING_ITEM = 0
    AWAITING_CHOICE = 1
    FINISHED = -1


class XPSource(str, Enum):
    PLAYER = "player"
    NPC = "npc"
    OTHER = "other"


class ObjectType(str, Enum):
    MAGICAL = "magical"  # 스크롤/책
    ARTIFACT = "artifact"
    GENERIC = "generic"


class BonusSlot(IntEnum):
    BONUS1 = 0
    BONUS2 = 1
    BONUS3 = 2
    BONUS4 = 3
    BONUS5 = 4
    BONUS6 = 5
    BONUS7 = 6
    BONUS8 = 7
    BONUS9 = 8
    BONUS10 = 9
    SPELL = 10
    SPELL1 = 11
    PROC_SPELL = 12
    PROC_SPELL1 = 13


BONUS_SLOT_COUNT = len(BonusSlot)


class TurnInError(str, Enum):
    NOT_FOUND = "not_found"
    NO_VERSIONS = "no_versions"
    AMBIGUOUS_NO_WINNER = "ambiguous_no_winner"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_COMBINATION = "invalid_combination"
    NO_ENCOUNTER_CREDIT = "no_encounter_credit"
    SESSION_BUSY = "session_busy"
    UNKNOWN_CHOICE = "unknown_choice"

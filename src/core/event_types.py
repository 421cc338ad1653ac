"""이벤트 유형 상수"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # world → artifact
    NPC_DIED = "npc_died"
    EXPERIENCE_GAINED = "experience_gained"

    # registry
    ARTIFACTS_LOADED = "artifacts_loaded"

    # experience
    ARTIFACT_EXPERIENCE_GAINED = "artifact_experience_gained"
    ARTIFACT_LEVEL_GAINED = "artifact_level_gained"

    # credit
    ENCOUNTER_CREDIT_GRANTED = "encounter_credit_granted"

    # scrolls
    SCROLLS_COMBINED = "scrolls_combined"

    # turn-in
    TURNIN_STARTED = "turnin_started"
    TURNIN_COMPLETED = "turnin_completed"
    TURNIN_FAILED = "turnin_failed"

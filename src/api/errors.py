"""TurnInError → HTTP status"""

from fastapi import HTTPException

from src.core.artifact.enums import TurnInError

STATUS_BY_ERROR = {
    TurnInError.NOT_FOUND: 404,
    TurnInError.NO_VERSIONS: 404,
    TurnInError.NO_ENCOUNTER_CREDIT: 403,
    TurnInError.SESSION_BUSY: 409,
    TurnInError.AMBIGUOUS_NO_WINNER: 409,
    TurnInError.INVALID_COMBINATION: 400,
    TurnInError.UNKNOWN_CHOICE: 400,
    TurnInError.CAPACITY_EXCEEDED: 507,
}


def raise_for_error(
    error: TurnInError, message: str = "", options: list[str] | None = None
) -> None:
    raise HTTPException(
        status_code=STATUS_BY_ERROR.get(error, 400),
        detail={"error": error.value, "message": message, "options": options or []},
    )

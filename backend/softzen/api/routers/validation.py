from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from softzen.api.deps import get_settings
from softzen.config import Settings
from softzen.errors import NotFoundError
from softzen.schemas import BulkValidationResponse
from softzen.validators import ENTITY_TYPES, entity_steps, validate_fields

router = APIRouter(prefix="/api/validate", tags=["validation"])

# never echoed back to the client
SECRET_FIELDS = ("password",)


@router.post("/{entity}", response_model=BulkValidationResponse)
async def validate_entity(
    entity: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_settings),
):
    """Run every rule for ``entity`` and report all failures at once."""
    if entity not in ENTITY_TYPES:
        raise NotFoundError(f"Unknown entity type: {entity}")

    steps = entity_steps(entity, comments_min_length=settings.comments_min_length)
    result = validate_fields(steps, payload or {}, collect_all=True)
    values = {k: v for k, v in result.values.items() if k not in SECRET_FIELDS}
    return BulkValidationResponse(entity=entity, valid=result.ok, errors=result.error_list(), values=values)

# ridehail/services/matching_service/routes.py
"""
HTTP API Matching Service.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ridehail.common.exceptions import NoDriversFoundError
from ridehail.services.matching_service.auth import RequestContext, require_authenticated
from ridehail.services.matching_service.dependencies import get_matching_service
from ridehail.services.matching_service.service import MatchingService
from ridehail.shared.models import MatchRequest, MatchResponse

router = APIRouter(tags=["matching"])


@router.post("/match", response_model=MatchResponse)
async def match(
    context: Annotated[RequestContext, Depends(require_authenticated)],
    service: Annotated[MatchingService, Depends(get_matching_service)],
    request: MatchRequest,
) -> MatchResponse:
    """Найти ближайшего водителя для пассажира из токена."""
    service.validate(request)

    try:
        result = await service.match(request.to_rider(context.user_id), request.radius)
    except NoDriversFoundError as e:
        raise NoDriversFoundError("No drivers found nearby") from e

    return MatchResponse.from_result(result)

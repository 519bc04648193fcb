# relish/app/routers/entities.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from relish.app.deps import get_entity_resolver
from relish.app.domain.errors import EntityConsistencyError, ResolutionError
from relish.app.domain.models import CanonicalEntity, EntityKind
from relish.app.schemas.entities import EntityResponse, ResolveRequest, ResolveResponse
from relish.services.entity_resolver import EntityResolver
from relish.services.errors import RateLimitedError, ServiceError

log = logging.getLogger("entities")
router = APIRouter(prefix="/entities", tags=["entities"])


def _to_response(entity: CanonicalEntity) -> EntityResponse:
    return EntityResponse(id=entity.id, kind=entity.kind.value, name=entity.name)


@router.post("/{kind}/resolve", response_model=ResolveResponse)
async def resolve_entity(
    kind: EntityKind,
    body: ResolveRequest,
    resolver: EntityResolver = Depends(get_entity_resolver),
) -> ResolveResponse:
    name = body.name.strip()
    try:
        reference = await resolver.find_or_create(kind, name)
    except RateLimitedError as exc:
        log.warning("entities.rate_limited kind=%s name=%r", kind.value, name)
        raise HTTPException(status_code=429, detail="Model rate limit reached. Try again shortly.") from exc
    except EntityConsistencyError as exc:
        log.error("entities.inconsistent kind=%s name=%r error=%s", kind.value, name, exc)
        raise HTTPException(status_code=500, detail="Vector index and store are out of sync") from exc
    except (ServiceError, ResolutionError) as exc:
        log.exception("entities.resolve_fail kind=%s name=%r", kind.value, name)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return ResolveResponse(
        entity=_to_response(reference.entity),
        code=reference.code,
        created=reference.created,
    )


@router.get("/{kind}/{entity_id}", response_model=EntityResponse)
async def get_entity(
    kind: EntityKind,
    entity_id: str,
    resolver: EntityResolver = Depends(get_entity_resolver),
) -> EntityResponse:
    try:
        entity = await resolver.repository.get(kind, entity_id)
    except ResolutionError as exc:
        log.exception("entities.get_fail kind=%s id=%s", kind.value, entity_id)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if entity is None:
        raise HTTPException(status_code=404, detail=f"{kind.value} not found")
    return _to_response(entity)

from __future__ import annotations

from pydantic import BaseModel, Field

from relish.app.domain.models import ResolutionCode


class ResolveRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class EntityResponse(BaseModel):
    id: str
    kind: str
    name: str


class ResolveResponse(BaseModel):
    entity: EntityResponse
    code: ResolutionCode
    created: bool

"""
Purpose: Shared Pydantic models for the exporter.
Description: Canonical shapes for projects, entities, fetched pages and export results,
plus the decode step that turns the API's loosely-shaped JSON into those shapes.
Key Functions/Classes: `Project`, `Entity`, `Page`, `ExportResult`, `ExportReport`,
`decode_listing`, `decode_page`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .errors import MalformedResponseError


Record = Dict[str, Any]
M = TypeVar("M", bound=BaseModel)


class Project(BaseModel):
    id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Entity(BaseModel):
    """An experiment or dataset inside a project."""
    id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Page(BaseModel):
    records: List[Record] = Field(default_factory=list)
    cursor: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return not self.cursor or not self.records


class ExportResult(BaseModel):
    record_count: int = 0
    had_truncation: bool = False
    schema_drift_detected: bool = False
    new_fields: List[str] = Field(default_factory=list)


class EntityOutcome(BaseModel):
    kind: str
    entity_id: str
    name: str
    path: Optional[str] = None
    result: Optional[ExportResult] = None
    error: Optional[str] = None


class ExportReport(BaseModel):
    project_id: str
    project_name: str
    project_dir: Optional[str] = None
    exported: List[EntityOutcome] = Field(default_factory=list)
    failed: List[EntityOutcome] = Field(default_factory=list)

    @property
    def total_entities(self) -> int:
        return len(self.exported) + len(self.failed)

    @property
    def empty(self) -> List[EntityOutcome]:
        return [o for o in self.exported if o.result is not None and o.result.record_count == 0]

    @property
    def total_records(self) -> int:
        return sum(o.result.record_count for o in self.exported if o.result is not None)


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]


def decode_listing(payload: Any) -> List[Record]:
    """Normalize a listing response to a list of objects.

    Accepted shapes, in order: ``{"objects": [...]}``, a bare list,
    ``{"data": [...]}``. Any other mapping is an empty listing.
    """
    if isinstance(payload, Mapping):
        if payload.get("objects") is not None:
            return _as_list(payload["objects"])
        if payload.get("data") is not None:
            return _as_list(payload["data"])
        return []
    if isinstance(payload, list):
        return payload
    raise MalformedResponseError(f"Unexpected listing response of type {type(payload).__name__}")


def decode_page(payload: Any) -> Page:
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(f"Unexpected page response of type {type(payload).__name__}")
    records = payload.get("events")
    if records is None:
        records = payload.get("records")
    if records is None:
        records = []
    if not isinstance(records, list):
        raise MalformedResponseError("Page records must be a list")
    for record in records:
        if not isinstance(record, Mapping):
            raise MalformedResponseError(f"Page record of type {type(record).__name__} is not an object")
    cursor = payload.get("cursor")
    return Page(records=[dict(r) for r in records], cursor=str(cursor) if cursor else None)


def decode_object(model: Type[M], obj: Any) -> M:
    """Validate one listing object, reporting a bad shape as MalformedResponseError."""
    try:
        return model.model_validate(obj)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Unusable {model.__name__.lower()} in response: {exc.error_count()} validation error(s)"
        ) from exc


def decode_projects(payload: Any) -> List[Project]:
    return [decode_object(Project, obj) for obj in decode_listing(payload)]


def decode_entities(payload: Any) -> List[Entity]:
    return [decode_object(Entity, obj) for obj in decode_listing(payload)]

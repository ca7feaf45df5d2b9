"""Trackable entities — typed views over the external project object.

The project data belongs to the CRUD side of the application and is read
here, never written. It may arrive as plain dicts (JSON, camelCase keys)
or as objects with attributes (snake_case); the adapter accepts both and
produces one of four tagged entity types, each exposing an id, a chainage
string, and the fields shown in popups and the details panel.

Placement rules:
    Vehicles      status "Active", synthetic base chainage index*2.5 + 1 km
    RFIs          status "Open", at their location chainage
    Work sites    schedule tasks "On Track", synthetic chainage 2 + index*3 km
    Structures    every structure, at its location chainage
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from engine.mapping.geometry import format_chainage

VEHICLE_ACTIVE = "Active"
RFI_OPEN = "Open"
TASK_ON_TRACK = "On Track"
STRUCTURE_COMPLETED = "Completed"
STRUCTURE_IN_PROGRESS = "In Progress"


class EntityKind(str, Enum):
    VEHICLE = "VEHICLE"
    RFI = "RFI"
    WORKSITE = "WORKSITE"
    STRUCTURE = "STRUCTURE"


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def field_of(obj: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` (snake_case) from a dict or object, trying camelCase too."""
    if obj is None:
        return default
    for name in (key, _camel(key)):
        if isinstance(obj, dict):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return default


def _items(project: Any, key: str) -> list:
    return list(field_of(project, key) or [])


@dataclass(frozen=True)
class VehicleEntity:
    kind: ClassVar[EntityKind] = EntityKind.VEHICLE

    id: str
    plate_number: str
    type: str
    status: str
    driver: str
    base_km: float

    @property
    def chainage(self) -> str:
        return format_chainage(self.base_km)

    @property
    def label(self) -> str:
        return self.plate_number

    def display_fields(self) -> dict:
        return {
            "Plate Number": self.plate_number,
            "Type": self.type,
            "Driver": self.driver,
            "Status": self.status,
        }


@dataclass(frozen=True)
class RFIEntity:
    kind: ClassVar[EntityKind] = EntityKind.RFI

    id: str
    rfi_number: str
    location: str
    status: str
    description: str

    @property
    def chainage(self) -> str:
        return self.location

    @property
    def label(self) -> str:
        return f"RFI: {self.rfi_number}"

    def display_fields(self) -> dict:
        return {
            "RFI Number": self.rfi_number,
            "Location": self.location,
            "Issue": self.description,
        }


@dataclass(frozen=True)
class WorkSiteEntity:
    kind: ClassVar[EntityKind] = EntityKind.WORKSITE

    id: str
    name: str
    location: str
    progress: float

    @property
    def chainage(self) -> str:
        return self.location

    @property
    def label(self) -> str:
        return f"{self.name} ({self.progress:g}%)"

    def display_fields(self) -> dict:
        return {
            "Task Name": self.name,
            "Location Base": self.location,
            "Schedule Progress": f"{self.progress:g}%",
        }


@dataclass(frozen=True)
class StructureEntity:
    kind: ClassVar[EntityKind] = EntityKind.STRUCTURE

    id: str
    name: str
    type: str
    location: str
    status: str
    total_quantity: float = 0.0
    completed_quantity: float = 0.0
    components: tuple = field(default=(), compare=False)

    @property
    def chainage(self) -> str:
        return self.location

    @property
    def label(self) -> str:
        return self.name

    @property
    def progress_percent(self) -> float:
        if self.total_quantity <= 0:
            return 100.0 if self.status == STRUCTURE_COMPLETED else 0.0
        return round(min(100.0, self.completed_quantity / self.total_quantity * 100.0), 1)

    def display_fields(self) -> dict:
        return {
            "Structure": self.name,
            "Type": self.type,
            "Location": self.location,
            "Status": self.status,
            "Completion": f"{self.progress_percent:g}%",
        }


Entity = Union[VehicleEntity, RFIEntity, WorkSiteEntity, StructureEntity]


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def active_vehicles(project: Any) -> list[VehicleEntity]:
    active = [v for v in _items(project, "vehicles") if field_of(v, "status") == VEHICLE_ACTIVE]
    return [
        VehicleEntity(
            id=str(field_of(v, "id", "")),
            plate_number=str(field_of(v, "plate_number", "")),
            type=str(field_of(v, "type", "")),
            status=VEHICLE_ACTIVE,
            driver=str(field_of(v, "driver", "")),
            base_km=i * 2.5 + 1,
        )
        for i, v in enumerate(active)
    ]


def open_rfis(project: Any) -> list[RFIEntity]:
    return [
        RFIEntity(
            id=str(field_of(r, "id", "")),
            rfi_number=str(field_of(r, "rfi_number", "")),
            location=str(field_of(r, "location", "")),
            status=RFI_OPEN,
            description=str(field_of(r, "description", "")),
        )
        for r in _items(project, "rfis")
        if field_of(r, "status") == RFI_OPEN
    ]


def active_work_sites(project: Any) -> list[WorkSiteEntity]:
    on_track = [t for t in _items(project, "schedule") if field_of(t, "status") == TASK_ON_TRACK]
    return [
        WorkSiteEntity(
            id=str(field_of(t, "id", "")),
            name=str(field_of(t, "name", "")),
            location=f"{2 + i * 3}+000",
            progress=_num(field_of(t, "progress", 0)),
        )
        for i, t in enumerate(on_track)
    ]


def structure_assets(project: Any) -> list[StructureEntity]:
    result = []
    for s in _items(project, "structures"):
        components = tuple(field_of(s, "components") or ())
        result.append(
            StructureEntity(
                id=str(field_of(s, "id", "")),
                name=str(field_of(s, "name", "")),
                type=str(field_of(s, "type", "")),
                location=str(field_of(s, "location", "")),
                status=str(field_of(s, "status", "")),
                total_quantity=sum(_num(field_of(c, "total_quantity")) for c in components),
                completed_quantity=sum(_num(field_of(c, "completed_quantity")) for c in components),
                components=components,
            )
        )
    return result


@dataclass(frozen=True)
class TrackedEntities:
    """One render pass worth of entities, read from a project snapshot."""

    vehicles: tuple[VehicleEntity, ...] = ()
    rfis: tuple[RFIEntity, ...] = ()
    work_sites: tuple[WorkSiteEntity, ...] = ()
    structures: tuple[StructureEntity, ...] = ()

    @classmethod
    def from_project(cls, project: Any) -> TrackedEntities:
        return cls(
            vehicles=tuple(active_vehicles(project)),
            rfis=tuple(open_rfis(project)),
            work_sites=tuple(active_work_sites(project)),
            structures=tuple(structure_assets(project)),
        )

    def all(self) -> list[Entity]:
        return [*self.vehicles, *self.rfis, *self.work_sites, *self.structures]

    def find(self, kind: EntityKind | str, entity_id: str) -> Entity | None:
        kind = EntityKind(kind)
        for entity in self.all():
            if entity.kind is kind and entity.id == entity_id:
                return entity
        return None

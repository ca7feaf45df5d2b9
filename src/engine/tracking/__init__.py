"""Entity tracking — project entities placed on the route, plus GPS drift."""

from engine.tracking.drift import GpsDriftSimulator, RandomWalk, SequenceWalk
from engine.tracking.entities import (
    Entity,
    EntityKind,
    RFIEntity,
    StructureEntity,
    TrackedEntities,
    VehicleEntity,
    WorkSiteEntity,
)

__all__ = [
    "Entity",
    "EntityKind",
    "GpsDriftSimulator",
    "RFIEntity",
    "RandomWalk",
    "SequenceWalk",
    "StructureEntity",
    "TrackedEntities",
    "VehicleEntity",
    "WorkSiteEntity",
]

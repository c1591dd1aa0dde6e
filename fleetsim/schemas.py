from __future__ import annotations

"""
File: fleetsim/schemas.py
Purpose: Pydantic models for run configuration, parsed instances and HTTP contracts.
Key responsibilities:
- Validate run configuration (seed, time scale, replanning knobs, speed overrides).
- Describe a parsed problem instance handed to world construction.
- Validate request bodies of the HTTP API.
Key entrypoints:
- SimConfig, ProblemInstance
"""

from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from fleetsim.settings import Settings


class SimConfig(BaseModel):
    """Run-time configuration for a run (not the problem instance)."""
    seed: int = 12345
    time_scale: float = Field(default=1.0, ge=0)
    locked_prefix_count: int = Field(default=1, ge=0)
    min_seconds_between_replans: float = Field(default=1.0, ge=0)
    periodic_replan_interval: Optional[float] = Field(default=5.0, gt=0)
    planner_time_budget_ms: int = Field(default=50, ge=0)
    override_truck_speed: Optional[float] = Field(default=None, ge=0)
    override_depot_speed: Optional[float] = Field(default=None, ge=0)
    use_euclidean_travel: bool = True

    @field_validator("use_euclidean_travel")
    @classmethod
    def _euclidean_only(cls, value: bool) -> bool:
        if not value:
            raise ValueError("only euclidean travel is implemented")
        return value

    @classmethod
    def from_settings(cls, settings: Settings) -> SimConfig:
        return cls(
            seed=settings.fleet_seed,
            time_scale=settings.time_scale,
            locked_prefix_count=settings.locked_prefix_count,
            min_seconds_between_replans=settings.min_seconds_between_replans,
            periodic_replan_interval=settings.periodic_replan_interval,
            planner_time_budget_ms=settings.planner_time_budget_ms,
            override_truck_speed=settings.truck_speed_override,
            override_depot_speed=settings.depot_speed_override,
            use_euclidean_travel=settings.use_euclidean_travel,
        )


class DepotStopSpec(BaseModel):
    """Candidate rendezvous position for a mobile depot."""
    stop_id: int
    x: float
    y: float


class CustomerSpec(BaseModel):
    """Customer to insert into a running world."""
    x: float
    y: float
    demand: int = Field(default=1, ge=0)
    release_time: Optional[float] = None
    service_time: float = Field(default=1.0, ge=0)


class ProblemInstance(BaseModel):
    """Parsed problem description; node ids are 1-based."""
    name: str = ""
    comment: str = ""
    type: str = ""
    dimension: int = 0
    capacity: int = 0
    edge_weight_type: str = ""
    truck_speed: float = 1.0
    depot_speed: float = 0.0
    service_time: float = 1.0
    energy_capacity: Optional[float] = None
    energy_consumption: Optional[float] = None
    station_count_header: Optional[int] = None
    vehicles_header: Optional[int] = None
    node_pos: dict[int, tuple[float, float]] = Field(default_factory=dict)
    demand: dict[int, int] = Field(default_factory=dict)
    release_time: dict[int, float] = Field(default_factory=dict)
    depot_node_ids: list[int] = Field(default_factory=list)
    depot_candidate_stops: list[DepotStopSpec] = Field(default_factory=list)
    station_node_ids: list[int] = Field(default_factory=list)
    features: int = 0
    detected_problem_kind: str = ""


class TargetRefModel(BaseModel):
    kind: Literal["depot", "customer", "station"]
    id: int


class PlanRequest(BaseModel):
    """Append (or replace) routing targets on a truck plan."""
    targets: list[TargetRefModel]
    replace: bool = False
    locked_prefix_count: Optional[int] = Field(default=None, ge=0)


class DepotTargetRequest(BaseModel):
    stop_id: int


class StepRequest(BaseModel):
    dt: float
    count: int = Field(default=1, ge=1, le=100_000)


class SpeedRequest(BaseModel):
    multiplier: float = Field(ge=0)


class CreateRunRequest(BaseModel):
    """Start a new run from instance text or a generated scale preset."""
    instance_text: Optional[str] = None
    scale: Optional[str] = None
    seed: Optional[int] = None
    truck_count: Optional[int] = Field(default=None, ge=0)
    targets_per_truck: Optional[int] = Field(default=None, ge=0)
    config: Optional[SimConfig] = None

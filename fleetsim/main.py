from __future__ import annotations

"""
File: fleetsim/main.py
Purpose: FastAPI entrypoint exposing a single in-process fleet simulation.
Key responsibilities:
- Create runs from instance text or generated presets.
- Step, play and pause the run; expose state, events and metrics.
- Accept external plan and depot commands.
- Save and restore snapshots in the text line format.
Key entrypoints:
- health()
- /api/* endpoints
Config/env vars:
- SIM_HOST, SIM_PORT, LOG_LEVEL, FLEET_SEED, FLEET_SCALE, INSTANCE_PATH
- SIM_FIXED_STEP, SIM_TIME_SCALE, SIM_ARRIVE_EPSILON, SIM_DIAGNOSTICS, SIM_AUTO_PLAY
- DEMO_TRUCKS, DEMO_TARGETS_PER_TRUCK, *_SPEED_OVERRIDE
"""

import asyncio
from dataclasses import asdict
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from fleetsim.instance import InstanceFormatError
from fleetsim.runner import SimRunContext, SimRunner, load_run
from fleetsim.schemas import (
    CreateRunRequest,
    CustomerSpec,
    DepotTargetRequest,
    PlanRequest,
    SimConfig,
    SpeedRequest,
    StepRequest,
)
from fleetsim.settings import SCALE_MAP, settings
from fleetsim.sim.engine import SimulationEngine
from fleetsim.sim.entities import TargetKind, TargetRef, TruckState
from fleetsim.sim.events import format_event
from fleetsim.sim.logger import SimLogHandler, configure_logging
from fleetsim.sim.metrics import compute_metrics
from fleetsim.sim.world import insert_customer
from fleetsim.snapshot import SnapshotFormatError, create_snapshot, dumps, loads

log_handler = SimLogHandler()
configure_logging(settings.log_level, log_handler)
logger = logging.getLogger("fleet-sim.api")

app = FastAPI(title="fleet-sim", version="1.0.0")

_KINDS = {"depot": TargetKind.DEPOT, "customer": TargetKind.CUSTOMER, "station": TargetKind.STATION}


class RunHolder:
    """The current run and its optional real-time loop task."""
    def __init__(self) -> None:
        self.runner: SimRunner | None = None
        self.loop_task: asyncio.Task | None = None

    def require(self) -> SimRunner:
        if self.runner is None:
            raise HTTPException(status_code=409, detail="no run loaded")
        return self.runner

    def replace(self, runner: SimRunner) -> None:
        self.stop_loop()
        self.runner = runner

    def ensure_loop(self) -> None:
        if self.runner is not None and (self.loop_task is None or self.loop_task.done()):
            self.loop_task = asyncio.create_task(self.runner.run_realtime())
            self.loop_task.add_done_callback(_log_loop_exit)

    def stop_loop(self) -> None:
        if self.loop_task is not None and not self.loop_task.done():
            self.loop_task.cancel()
        self.loop_task = None


def _log_loop_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("realtime loop failed: %s", exc, exc_info=exc)


holder = RunHolder()


def _run_summary(runner: SimRunner) -> dict[str, Any]:
    world = runner.world
    return {
        "seed": runner.context.seed,
        "scenario_hash": runner.scenario_hash,
        "time": world.time,
        "features": int(world.features),
        "customers": len(world.customers),
        "trucks": len(world.trucks),
        "playing": runner.playing,
        "speed_multiplier": runner.speed_multiplier,
        "fixed_step": runner.fixed_step,
    }


@app.on_event("startup")
async def startup_event() -> None:
    """Load the default run and optionally start the real-time loop."""
    config = SimConfig.from_settings(settings)
    instance_text = None
    if settings.instance_path:
        instance_text = Path(settings.instance_path).read_text(encoding="utf-8")
    holder.replace(load_run(config, instance_text=instance_text, log_handler=log_handler))
    if settings.auto_play:
        holder.runner.play()
        holder.ensure_loop()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    holder.stop_loop()


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness/readiness endpoint."""
    return {"status": "ok"}


@app.get("/api/config")
async def config() -> dict[str, Any]:
    """Return service defaults, run config and scale presets."""
    return {
        "settings": asdict(settings),
        "run_config": SimConfig.from_settings(settings).model_dump(),
        "scale_map": SCALE_MAP,
    }


@app.post("/api/runs")
async def create_run(req: CreateRunRequest) -> dict[str, Any]:
    """Start a new run, replacing the current one."""
    config = req.config or SimConfig.from_settings(settings)
    if req.seed is not None:
        config = config.model_copy(update={"seed": req.seed})
    if req.scale is not None and req.scale not in SCALE_MAP:
        raise HTTPException(status_code=422, detail=f"invalid scale: {req.scale}")
    try:
        runner = load_run(
            config,
            instance_text=req.instance_text,
            scale=req.scale,
            truck_count=req.truck_count,
            targets_per_truck=req.targets_per_truck,
            log_handler=log_handler,
        )
    except InstanceFormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    holder.replace(runner)
    logger.info("run created seed=%s hash=%s", config.seed, runner.scenario_hash)
    return _run_summary(runner)


@app.post("/api/step")
async def step(req: StepRequest) -> dict[str, Any]:
    """Step the current run count times by dt."""
    runner = holder.require()
    for _ in range(req.count):
        runner.engine.step(req.dt)
    return _run_summary(runner)


@app.post("/api/play")
async def play() -> dict[str, Any]:
    runner = holder.require()
    runner.play()
    holder.ensure_loop()
    return _run_summary(runner)


@app.post("/api/pause")
async def pause() -> dict[str, Any]:
    runner = holder.require()
    runner.pause()
    return _run_summary(runner)


@app.post("/api/speed")
async def speed(req: SpeedRequest) -> dict[str, Any]:
    runner = holder.require()
    runner.set_speed_multiplier(req.multiplier)
    return _run_summary(runner)


@app.get("/api/state")
async def state() -> dict[str, Any]:
    """Return the full world view."""
    return holder.require().engine.snapshot()


@app.get("/api/events")
async def events(since: int = Query(default=0, ge=0)) -> dict[str, Any]:
    """Return events from position `since` onward, with feed lines."""
    queue = holder.require().engine.queue
    items = queue.since(since)
    return {
        "total": len(queue),
        "events": [
            {"time": e.time, "kind": e.kind.name.lower(), "code": int(e.kind), "a": e.a, "b": e.b}
            for e in items
        ],
        "feed": [format_event(e) for e in items],
    }


@app.get("/api/metrics")
async def metrics() -> dict[str, float | int]:
    return compute_metrics(holder.require().world)


@app.get("/api/logs")
async def logs(tail: int = Query(default=100, ge=1, le=10_000)) -> dict[str, Any]:
    return {"lines": log_handler.lines[-tail:]}


@app.get("/api/snapshot", response_class=PlainTextResponse)
async def get_snapshot() -> str:
    """Serialize the current run to the snapshot text format."""
    runner = holder.require()
    snap = create_snapshot(runner.world, runner.engine.queue.to_list(), seed=runner.context.seed)
    return dumps(snap)


@app.put("/api/snapshot")
async def put_snapshot(request: Request) -> dict[str, Any]:
    """Replace the current run with one restored from snapshot text."""
    body = await request.body()
    try:
        snap = loads(body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=422, detail=f"snapshot is not utf-8: {exc}") from exc
    except SnapshotFormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    engine = SimulationEngine.from_snapshot(
        snap,
        arrive_epsilon=settings.arrive_epsilon,
        diagnostics=settings.diagnostics,
    )
    config = SimConfig.from_settings(settings).model_copy(update={"seed": snap.seed})
    runner = SimRunner(engine, SimRunContext(snap.seed, log_handler), config=config, fixed_step=settings.fixed_step)
    holder.replace(runner)
    logger.info("run restored seed=%s t=%.3f events=%s", snap.seed, snap.world.time, len(snap.events))
    return _run_summary(runner)


@app.post("/api/trucks/{truck_id}/plan")
async def update_plan(truck_id: int, req: PlanRequest) -> dict[str, Any]:
    """Append targets to a truck plan, or replace the plan and rewind its cursor."""
    runner = holder.require()
    truck = runner.world.find_truck(truck_id)
    if truck is None:
        raise HTTPException(status_code=404, detail=f"unknown truck: {truck_id}")

    targets = [TargetRef(_KINDS[t.kind], t.id) for t in req.targets]
    if req.replace:
        if truck.state == TruckState.SERVICING:
            # service completion advances the cursor past plan[0]
            raise HTTPException(status_code=409, detail=f"truck {truck_id} is servicing a customer")
        truck.plan[:] = targets
        truck.current_target_index = 0
        truck.clear_leg()
        truck.state = TruckState.IDLE
    else:
        truck.plan.extend(targets)
    if req.locked_prefix_count is not None:
        truck.locked_prefix_count = req.locked_prefix_count
    return {
        "truck_id": truck.id,
        "plan": [str(ref) for ref in truck.plan],
        "current_target_index": truck.current_target_index,
        "locked_prefix_count": truck.locked_prefix_count,
    }


@app.post("/api/depot/target")
async def depot_target(req: DepotTargetRequest) -> dict[str, Any]:
    """Send the mobile depot to one of its candidate stops."""
    depot = holder.require().world.depot
    if not depot.command_to_stop(req.stop_id):
        raise HTTPException(status_code=404, detail=f"unknown stop: {req.stop_id}")
    return {"stop_id": depot.target_stop_id, "x": depot.target_pos.x, "y": depot.target_pos.y}


@app.post("/api/customers")
async def add_customer(spec: CustomerSpec) -> dict[str, Any]:
    world = holder.require().world
    customer = insert_customer(world, spec)
    return {"id": customer.id, "status": customer.status.name.lower(), "release_time": customer.release_time}


def main() -> None:
    import uvicorn

    uvicorn.run("fleetsim.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

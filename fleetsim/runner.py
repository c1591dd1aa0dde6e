from __future__ import annotations

"""
File: fleetsim/runner.py
Purpose: Drive a simulation engine on a fixed timestep.
Key responsibilities:
- Bundle seed, RNG and log buffer for a run.
- Build a run from instance text or a generated scale preset.
- Accumulate wall-clock time (scaled) into fixed engine steps; play/pause/step.
- Headless run-to-completion and an asyncio real-time loop.
Key entrypoints:
- load_run(), SimRunner.advance(), SimRunner.run_until(), SimRunner.run_realtime()
"""

import asyncio
import logging
import time

from fleetsim.instance import parse_instance_text
from fleetsim.schemas import SimConfig
from fleetsim.settings import SCALE_MAP, settings
from fleetsim.sim.engine import SimulationEngine
from fleetsim.sim.logger import SimLogHandler
from fleetsim.sim.metrics import compute_metrics
from fleetsim.sim.rng import DeterministicRng
from fleetsim.sim.world import assign_demo_plans, build_world, create_demo_fleet, generate_instance

logger = logging.getLogger("fleet-sim.runner")


class SimRunContext:
    """Seed, RNG and log buffer shared by everything in one run."""
    def __init__(self, seed: int, log_handler: SimLogHandler | None = None) -> None:
        self.seed = seed
        self.rng = DeterministicRng(seed)
        self.log_handler = log_handler if log_handler is not None else SimLogHandler()


class SimRunner:
    """Fixed-timestep driver around a SimulationEngine."""
    def __init__(
        self,
        engine: SimulationEngine,
        context: SimRunContext,
        config: SimConfig | None = None,
        fixed_step: float = 0.1,
        scenario_hash: str = "",
    ) -> None:
        if fixed_step <= 0:
            raise ValueError("fixed_step must be > 0")
        self.engine = engine
        self.context = context
        self.config = config or SimConfig(seed=context.seed)
        self.fixed_step = fixed_step
        self.scenario_hash = scenario_hash
        self.speed_multiplier = self.config.time_scale
        self.playing = False
        self._accumulator = 0.0

    @property
    def world(self):
        return self.engine.world

    def play(self) -> None:
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def toggle(self) -> None:
        self.playing = not self.playing

    def set_speed_multiplier(self, value: float) -> None:
        self.speed_multiplier = max(0.0, value)

    def step_once(self) -> None:
        self.engine.step(self.fixed_step)

    def advance(self, real_dt: float) -> int:
        """Feed elapsed wall-clock seconds; returns how many fixed steps ran."""
        if not self.playing or real_dt <= 0:
            return 0
        self._accumulator += real_dt * self.speed_multiplier
        steps = 0
        while self._accumulator >= self.fixed_step:
            self.engine.step(self.fixed_step)
            self._accumulator -= self.fixed_step
            steps += 1
        return steps

    def run_until(self, max_time: float) -> dict[str, float | int]:
        """Step headlessly until max_time or until no work remains; returns metrics."""
        while self.engine.time < max_time and not self.engine.should_stop():
            self.engine.step(self.fixed_step)
        metrics = compute_metrics(self.world)
        logger.info("run finished seed=%s metrics=%s", self.context.seed, metrics)
        return metrics

    async def run_realtime(self, max_time: float | None = None, tick_s: float | None = None) -> None:
        """Advance on the asyncio loop in real time until max_time is reached or the task is cancelled."""
        tick_s = tick_s if tick_s is not None else self.fixed_step
        last = time.monotonic()
        logger.info("realtime loop started seed=%s tick_s=%s", self.context.seed, tick_s)
        while max_time is None or self.engine.time < max_time:
            await asyncio.sleep(tick_s)
            now = time.monotonic()
            self.advance(now - last)
            last = now
        logger.info("realtime loop stopped t=%.3f", self.engine.time)


def load_run(
    config: SimConfig,
    instance_text: str | None = None,
    scale: str | None = None,
    truck_count: int | None = None,
    targets_per_truck: int | None = None,
    fixed_step: float | None = None,
    arrive_epsilon: float | None = None,
    diagnostics: bool | None = None,
    log_handler: SimLogHandler | None = None,
) -> SimRunner:
    """Build a runner from instance text, or from a generated preset when no text is given.

    Without an explicit truck_count, presets use their own truck count and
    instance text uses DEMO_TRUCKS.
    """
    scenario_hash = ""
    if instance_text is not None:
        instance = parse_instance_text(instance_text)
        default_trucks = settings.demo_trucks
    else:
        scale = scale or settings.fleet_scale
        instance, scenario_hash = generate_instance(
            seed=config.seed,
            scale=scale,
            world_size=settings.world_size,
        )
        default_trucks = SCALE_MAP[scale]["trucks"]

    world = build_world(instance, config)
    truck_speed = config.override_truck_speed if config.override_truck_speed is not None else instance.truck_speed
    create_demo_fleet(world, truck_count if truck_count is not None else default_trucks, truck_speed)
    assign_demo_plans(
        world,
        targets_per_truck if targets_per_truck is not None else settings.demo_targets_per_truck,
        locked_prefix_count=config.locked_prefix_count,
    )

    engine = SimulationEngine(
        world,
        arrive_epsilon=arrive_epsilon if arrive_epsilon is not None else settings.arrive_epsilon,
        diagnostics=diagnostics if diagnostics is not None else settings.diagnostics,
    )
    context = SimRunContext(config.seed, log_handler)
    logger.info(
        "run loaded seed=%s name=%s kind=%s customers=%s trucks=%s stops=%s",
        config.seed,
        instance.name,
        instance.detected_problem_kind,
        len(world.customers),
        len(world.trucks),
        len(world.depot.candidate_stops),
    )
    return SimRunner(
        engine,
        context,
        config=config,
        fixed_step=fixed_step if fixed_step is not None else settings.fixed_step,
        scenario_hash=scenario_hash,
    )

"""
File: fleetsim/settings.py
Purpose: Environment-backed configuration for the fleet simulator.
Key responsibilities:
- Parse service, stepping and run-policy settings.
- Define generated-scenario scale presets.
"""

from dataclasses import dataclass
import os


DEFAULT_SCALE_MAP = {
    "mini": {"customers": 5, "trucks": 2},
    "small": {"customers": 25, "trucks": 3},
    "demo": {"customers": 50, "trucks": 5},
    "large": {"customers": 200, "trucks": 12},
}


def _int_env(name: str, default: int = 0) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


def _optional_float_env(name: str, default: float | None = None) -> float | None:
    """Parse a float env var; unset means default, "none" means None."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    if raw.strip().lower() == "none":
        return None
    return float(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _build_scale_map() -> dict[str, dict[str, int]]:
    """Return the scale map with optional global overrides."""
    scale_map = {key: value.copy() for key, value in DEFAULT_SCALE_MAP.items()}
    customers = _int_env("FLEET_CUSTOMERS", 0)
    trucks = _int_env("FLEET_TRUCKS", 0)
    if customers > 0 and trucks > 0:
        for key in scale_map:
            scale_map[key] = {"customers": customers, "trucks": trucks}
    return scale_map


SCALE_MAP = _build_scale_map()


@dataclass(frozen=True)
class Settings:
    """Simulator configuration parsed from environment."""
    host: str = os.getenv("SIM_HOST", "0.0.0.0")
    port: int = int(os.getenv("SIM_PORT", "8010"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    fleet_seed: int = int(os.getenv("FLEET_SEED", "12345"))
    fleet_scale: str = os.getenv("FLEET_SCALE", "demo")
    world_size: int = int(os.getenv("WORLD_SIZE", "100"))
    instance_path: str = os.getenv("INSTANCE_PATH", "")
    demo_trucks: int = int(os.getenv("DEMO_TRUCKS", "3"))
    demo_targets_per_truck: int = int(os.getenv("DEMO_TARGETS_PER_TRUCK", "3"))
    time_scale: float = float(os.getenv("SIM_TIME_SCALE", "1"))
    fixed_step: float = float(os.getenv("SIM_FIXED_STEP", "0.1"))
    arrive_epsilon: float = float(os.getenv("SIM_ARRIVE_EPSILON", "0.1"))
    diagnostics: bool = _bool_env("SIM_DIAGNOSTICS", False)
    auto_play: bool = _bool_env("SIM_AUTO_PLAY", False)
    locked_prefix_count: int = int(os.getenv("LOCKED_PREFIX_COUNT", "1"))
    min_seconds_between_replans: float = float(os.getenv("MIN_SECONDS_BETWEEN_REPLANS", "1.0"))
    periodic_replan_interval: float | None = _optional_float_env("PERIODIC_REPLAN_INTERVAL", 5.0)
    planner_time_budget_ms: int = int(os.getenv("PLANNER_TIME_BUDGET_MS", "50"))
    truck_speed_override: float | None = _optional_float_env("TRUCK_SPEED_OVERRIDE")
    depot_speed_override: float | None = _optional_float_env("DEPOT_SPEED_OVERRIDE")
    use_euclidean_travel: bool = _bool_env("USE_EUCLIDEAN_TRAVEL", True)


settings = Settings()

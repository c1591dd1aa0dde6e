"""
File: fleetsim/sim/features.py
Purpose: Problem feature bitset consumed by the engine and world construction.
"""

from enum import IntFlag


class FeatureFlags(IntFlag):
    """Optional problem characteristics active for a run."""
    NONE = 0
    CAPACITATED = 1 << 0
    ELECTRIC = 1 << 1
    DYNAMIC = 1 << 2
    MOVING_DEPOT = 1 << 3


def problem_kind_code(flags: FeatureFlags) -> str:
    """Return a compact kind code such as C, CE, CD, CDM or CEDM (U if not capacitated)."""
    if not flags & FeatureFlags.CAPACITATED:
        return "U"
    code = "C"
    if flags & FeatureFlags.ELECTRIC:
        code += "E"
    if flags & FeatureFlags.DYNAMIC:
        code += "D"
    if flags & FeatureFlags.MOVING_DEPOT:
        code += "M"
    return code

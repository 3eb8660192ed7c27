"""Parameter spaces and deterministic configuration enumeration.

A parameter space maps parameter names to Optuna distributions. The
functions here turn an iteration index into a concrete parameter
assignment, so that "the i-th random configuration" and "the i-th grid
configuration" are pure functions of the index (and, for random draws, the
seed). Replaying index i always yields the same parameters.

Supported distributions:
- CategoricalDistribution: any list of choices
- IntDistribution: integer range with step
- FloatDistribution: float range; a step is required for grid enumeration
"""

import math
import zlib
from typing import Any

import numpy as np
from optuna.distributions import (
    BaseDistribution,
    CategoricalDistribution,
    FloatDistribution,
    IntDistribution,
)

ParameterSpace = dict[str, BaseDistribution]


def grid_values(distribution: BaseDistribution) -> list[Any]:
    """Enumerate the finite grid of a distribution.

    Raises:
        ValueError: If the distribution has no finite grid (float without step)
    """
    if isinstance(distribution, CategoricalDistribution):
        return list(distribution.choices)
    if isinstance(distribution, IntDistribution):
        return list(range(distribution.low, distribution.high + 1, distribution.step))
    if isinstance(distribution, FloatDistribution):
        if distribution.step is None:
            raise ValueError("FloatDistribution needs a step to be enumerated as a grid")
        count = int(round((distribution.high - distribution.low) / distribution.step)) + 1
        return [round(distribution.low + k * distribution.step, 10) for k in range(count)]
    raise ValueError(f"Unsupported distribution: {distribution!r}")


def grid_size(space: ParameterSpace) -> int:
    """Number of grid configurations (1 for an empty space)."""
    return math.prod(len(grid_values(dist)) for dist in space.values())


def grid_parameters(space: ParameterSpace, index: int) -> dict[str, Any]:
    """Return the index-th grid configuration.

    Configurations are ordered like itertools.product over the parameters in
    declaration order (the last parameter varies fastest).

    Raises:
        IndexError: If index is outside [0, grid_size(space))
    """
    size = grid_size(space)
    if not 0 <= index < size:
        raise IndexError(f"grid index {index} out of range for {size} configurations")

    params: dict[str, Any] = {}
    remainder = index
    for name in reversed(list(space)):
        values = grid_values(space[name])
        remainder, position = divmod(remainder, len(values))
        params[name] = values[position]
    # Restore declaration order
    return {name: params[name] for name in space}


def random_parameters(space: ParameterSpace, seed: int, index: int) -> dict[str, Any]:
    """Return the index-th random configuration for a given seed.

    The generator is derived from (seed, index) alone, so draws do not depend
    on how many configurations were drawn before.
    """
    rng = np.random.default_rng([seed, index])
    params: dict[str, Any] = {}
    for name, distribution in space.items():
        if isinstance(distribution, FloatDistribution) and distribution.step is None:
            if distribution.log:
                low, high = math.log(distribution.low), math.log(distribution.high)
                value = math.exp(rng.uniform(low, high))
            else:
                value = rng.uniform(distribution.low, distribution.high)
            params[name] = float(value)
        else:
            values = grid_values(distribution)
            params[name] = _to_python(values[int(rng.integers(len(values)))])
    return params


def stage_seed(seed: int, label: str) -> int:
    """Derive the seed of one stage from the run seed and the stage label.

    Stages of the same run draw from independent streams, so trial i of one
    automatic stage is uncorrelated with trial i of another.
    """
    key = zlib.crc32(label.encode("utf-8"))
    return int(np.random.SeedSequence([seed, key]).generate_state(1)[0])


def contains(distribution: BaseDistribution, value: Any) -> bool:
    """Check whether a value lies inside a distribution's domain."""
    if isinstance(distribution, CategoricalDistribution):
        return value in distribution.choices
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(distribution, IntDistribution):
        return float(value).is_integer() and distribution.low <= value <= distribution.high
    if isinstance(distribution, FloatDistribution):
        return distribution.low <= value <= distribution.high
    return False


def _to_python(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value

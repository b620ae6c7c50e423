"""
Scenario Definitions for the Sequence-Risk Simulator

This file contains the return-sequence type and the functions that
synthesize sequences instead of replaying history.

Why scenarios matter:
- Markets don't give constant returns
- "Sequence of returns risk" means WHEN bad years happen matters enormously
- A crash right after retiring is devastating; the same crash 20 years later barely matters

All returns in this module are in percentage points (-37.0 means -37%).
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple


# =============================================================================
# RETURN SEQUENCE
# =============================================================================

@dataclass(frozen=True)
class ReturnSequence:
    """
    An ordered list of annual returns, in percentage points.

    Order is the whole point: the same returns in a different order give a
    different outcome once withdrawals are involved.
    """
    returns: Tuple[float, ...]
    scenario_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        values = tuple(float(r) for r in self.returns)
        for i, r in enumerate(values):
            if not math.isfinite(r):
                raise ValueError(f"Return at index {i} is not finite: {r}")
        object.__setattr__(self, 'returns', values)

    def __len__(self) -> int:
        return len(self.returns)

    def __iter__(self):
        return iter(self.returns)

    def __getitem__(self, index):
        return self.returns[index]

    @classmethod
    def from_fractions(cls, values: Iterable[float], scenario_id: Optional[str] = None,
                       name: Optional[str] = None) -> 'ReturnSequence':
        """Build a sequence from fractional returns (e.g. -0.37 for -37%)."""
        return cls(tuple(v * 100 for v in values), scenario_id, name)

    def as_fractions(self) -> List[float]:
        return [r / 100 for r in self.returns]

    def mean(self) -> float:
        """Arithmetic mean in percentage points (0.0 for an empty sequence)."""
        if not self.returns:
            return 0.0
        return sum(self.returns) / len(self.returns)

    def reversed(self) -> 'ReturnSequence':
        """Same returns, opposite order. Same mean, different fate."""
        name = f"{self.name} (reversed)" if self.name else None
        scenario_id = f"{self.scenario_id}-reversed" if self.scenario_id else None
        return ReturnSequence(self.returns[::-1], scenario_id, name)


# =============================================================================
# CUSTOM CRASH SCENARIOS
# =============================================================================

RECOVERY_SHAPES = ('V', 'U', 'L', 'W')

# Fixed recovery legs appended after the crash phase.
# These are literal values, not derived from the crash parameters.
RECOVERY_LEGS = {
    'V': (40, 25, 15, 10),                    # Sharp recovery
    'U': (-5, 0, 5, 20, 15, 10),              # Gradual bottom then recovery
    'L': (2, 1, 0, -2, 3, 1, 2, -1),          # No recovery (stagnation)
    'W': (25, 15, -20, -15, 30, 20, 10),      # Double dip
}


@dataclass(frozen=True)
class CustomScenarioParams:
    """
    Parameters for a synthetic crash.

    crash_percent and inflation_rate are percentage points (-50 for a 50% crash).
    inflation_rate is carried along for display; the simulator ignores it.
    """
    crash_percent: float
    duration_months: int
    recovery_shape: str
    inflation_rate: float = 3.0
    name: str = 'Custom Crash'


def build_custom_scenario(params: CustomScenarioParams) -> ReturnSequence:
    """
    Turn four crash parameters into a return sequence.

    The crash is spread evenly over ceil(duration_months / 12) years so that
    compounding the yearly rate reproduces the total crash exactly, then the
    fixed recovery leg for the chosen shape is appended.

    Example:
        >>> build_custom_scenario(CustomScenarioParams(-50, 12, 'V')).returns
        (-50.0, 40.0, 25.0, 15.0, 10.0)
    """
    if params.duration_months <= 0:
        raise ValueError(f"duration_months must be positive, got {params.duration_months}")
    if params.recovery_shape not in RECOVERY_LEGS:
        raise ValueError(
            f"Unknown recovery shape: {params.recovery_shape} "
            f"(expected one of {', '.join(RECOVERY_SHAPES)})"
        )
    if params.crash_percent < -100:
        raise ValueError(f"crash_percent cannot be below -100, got {params.crash_percent}")

    crash_years = math.ceil(params.duration_months / 12)
    annual_crash = (1 + params.crash_percent / 100) ** (1 / crash_years) - 1

    returns = [annual_crash * 100] * crash_years
    returns.extend(RECOVERY_LEGS[params.recovery_shape])

    return ReturnSequence(tuple(returns), scenario_id=f"custom-{params.recovery_shape}", name=params.name)


# =============================================================================
# SIMPLE GENERATORS
# =============================================================================

def baseline_returns(years: int, annual_return: float = 7.0) -> ReturnSequence:
    """
    Steady returns every year - the simplest (and most optimistic) case.

    Example:
        >>> baseline_returns(3, 6.0).returns
        (6.0, 6.0, 6.0)
    """
    return ReturnSequence((annual_return,) * max(0, years), scenario_id='baseline',
                          name=f"Baseline ({annual_return:g}% steady)")


def crash_at_year(years: int, crash_year: int, magnitude: float = 40.0,
                  baseline: float = 7.0) -> ReturnSequence:
    """
    Steady returns with a single crash dropped into a chosen year.

    The crash year (1-based) loses `magnitude` percent, the following year
    gets half of it back, every other year earns `baseline`.
    Sliding crash_year from 1 upward shows how much worse early crashes are.
    """
    if crash_year < 1:
        raise ValueError(f"crash_year is 1-based, got {crash_year}")

    returns = []
    for i in range(years):
        if i == crash_year - 1:
            returns.append(-magnitude)
        elif i == crash_year:
            returns.append(magnitude * 0.5)  # Partial recovery
        else:
            returns.append(baseline)
    return ReturnSequence(tuple(returns), scenario_id=f"crash-year-{crash_year}",
                          name=f"-{magnitude:g}% crash in year {crash_year}")


def reverse_sequence(sequence: ReturnSequence) -> ReturnSequence:
    return sequence.reversed()


# "Same average, different order": strong years first, weak years last.
# Reverse it to get the bad-luck version.
SEQUENCE_COMPARISON = ReturnSequence(
    (
        12, 15, 10, 8, 14, 11, 9, 13, 7, 6,    # Strong early years
        5, 3, 2, -2, -4, -8, 0, 4, 1, -1,      # Weaker later years
    ),
    scenario_id='good-order',
    name='Good order (strong years first)',
)


# =============================================================================
# QUICK TEST
# =============================================================================

if __name__ == "__main__":
    print("=== Custom Crash Shapes (-50% over 18 months) ===\n")

    for shape in RECOVERY_SHAPES:
        seq = build_custom_scenario(CustomScenarioParams(-50, 18, shape))
        returns_str = ', '.join([f"{r:+.1f}%" for r in seq])
        print(f"{shape}: {returns_str}")

    print("\n=== Same Average, Different Order ===\n")
    good = SEQUENCE_COMPARISON
    bad = good.reversed()
    print(f"Good order average: {good.mean():.2f}%")
    print(f"Bad order average:  {bad.mean():.2f}%")

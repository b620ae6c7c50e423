"""
Bounded Solvers

Binary searches that answer planning questions:
- How many years until a balance reaches a target?
- What is the smallest starting portfolio that survives enough histories?
- What is the largest withdrawal that does?

Every search stops after SAFETY_MAX_ITERATIONS no matter what, and
"can't get there" is an explicit answer rather than an endless loop.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from batch_aggregator import aggregate
from config import MAX_PROJECTION_YEARS, SAFETY_MAX_ITERATIONS, SUCCESS_THRESHOLD
from scenarios import ReturnSequence
from withdrawal_simulator import PortfolioParameters

logger = logging.getLogger(__name__)


# =============================================================================
# YEARS TO TARGET
# =============================================================================

@dataclass(frozen=True)
class TargetProjection:
    reachable: bool
    years: Optional[int]       # None when unreachable
    iterations: int


def project_balance(balance: float, annual_return: float, annual_contribution: float,
                    years: int) -> float:
    """Balance after `years` of growth, adding the contribution at each year end."""
    if annual_return == 0:
        return balance + annual_contribution * years
    try:
        growth = (1 + annual_return) ** years
    except OverflowError:
        return math.inf
    return balance * growth + annual_contribution * (growth - 1) / annual_return


def years_to_target(
    balance: float,
    target: float,
    annual_return: float,
    annual_contribution: float = 0.0,
    max_years: int = 100,
    max_iterations: int = SAFETY_MAX_ITERATIONS
) -> TargetProjection:
    """
    Smallest whole number of years until balance >= target.

    Unreachable when the first year doesn't move the balance up (growth and
    contributions can't close the gap), or when the target isn't met within
    max_years.
    """
    if not 0 <= max_years <= MAX_PROJECTION_YEARS:
        raise ValueError(f"max_years must be between 0 and {MAX_PROJECTION_YEARS}, got {max_years}")
    if not all(math.isfinite(v) for v in (balance, target, annual_return, annual_contribution)):
        raise ValueError("balance, target, annual_return and annual_contribution must be finite")
    if balance >= target:
        return TargetProjection(reachable=True, years=0, iterations=0)

    # Once the yearly change is non-positive it never turns positive again
    if balance * annual_return + annual_contribution <= 0:
        return TargetProjection(reachable=False, years=None, iterations=0)

    if project_balance(balance, annual_return, annual_contribution, max_years) < target:
        return TargetProjection(reachable=False, years=None, iterations=0)

    # Invariant: projection(low) < target <= projection(high)
    low, high = 0, max_years
    iterations = 0
    while high - low > 1 and iterations < max_iterations:
        iterations += 1
        mid = (low + high) // 2
        if project_balance(balance, annual_return, annual_contribution, mid) >= target:
            high = mid
        else:
            low = mid

    return TargetProjection(reachable=True, years=high, iterations=iterations)


# =============================================================================
# BULLETPROOF FLOOR
# =============================================================================

def _success_rate(params: PortfolioParameters, sequences: Sequence[ReturnSequence]) -> float:
    return aggregate(params, sequences, max_workers=1).success_rate


def find_bulletproof_floor(
    params: PortfolioParameters,
    sequences: Sequence[ReturnSequence],
    target_success_rate: float = SUCCESS_THRESHOLD,
    tolerance: float = 10_000,
    max_iterations: int = SAFETY_MAX_ITERATIONS
) -> Optional[float]:
    """
    Find minimum starting portfolio for the target success rate.

    Searches between zero and twice the planned portfolio. Returns None when
    even the upper end falls short.
    """
    sequences = list(sequences)
    if not sequences:
        raise ValueError("need at least one sequence to search over")

    low = 0.0
    high = max(params.initial_balance * 2, params.annual_withdrawal * params.num_years)

    if _success_rate(replace(params, initial_balance=high), sequences) < target_success_rate:
        return None

    iterations = 0
    while high - low > tolerance and iterations < max_iterations:
        iterations += 1
        mid = (low + high) / 2
        if _success_rate(replace(params, initial_balance=mid), sequences) >= target_success_rate:
            high = mid
        else:
            low = mid

    logger.debug("Bulletproof floor %.0f after %d iterations", high, iterations)
    return high


def max_sustainable_withdrawal(
    params: PortfolioParameters,
    sequences: Sequence[ReturnSequence],
    target_success_rate: float = SUCCESS_THRESHOLD,
    tolerance: float = 100,
    max_iterations: int = SAFETY_MAX_ITERATIONS
) -> Optional[float]:
    """
    Largest fixed annual withdrawal that keeps the target success rate.

    Returns None when even a zero withdrawal misses the target.
    """
    sequences = list(sequences)
    if not sequences:
        raise ValueError("need at least one sequence to search over")

    if _success_rate(replace(params, annual_withdrawal=0.0), sequences) < target_success_rate:
        return None

    low = 0.0
    high = params.initial_balance

    iterations = 0
    while high - low > tolerance and iterations < max_iterations:
        iterations += 1
        mid = (low + high) / 2
        if _success_rate(replace(params, annual_withdrawal=mid), sequences) >= target_success_rate:
            low = mid
        else:
            high = mid

    logger.debug("Max sustainable withdrawal %.0f after %d iterations", low, iterations)
    return low

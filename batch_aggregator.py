"""
Batch Aggregation

Runs the withdrawal simulator once per return sequence and reduces the
results to the numbers people actually look at:
- success rate ("your plan survives X% of these histories")
- percentile outcomes ("the 5th-percentile ending balance is $Y")
- outcome buckets relative to the starting balance

Sequences come from the caller: historical scenarios, rolling windows of
S&P 500 history, or a Monte Carlo sample set generated elsewhere.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from itertools import repeat
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from config import PARALLEL_THRESHOLD, REPORT_PERCENTILES
from crisis_scenarios import rolling_historical_sequences
from scenarios import ReturnSequence
from withdrawal_simulator import PortfolioParameters, simulate_scenario

logger = logging.getLogger(__name__)

BUCKET_LABELS = {
    'excellent': 'Excellent (2x+)',
    'good': 'Good (1-2x)',
    'adequate': 'Adequate (0-1x)',
    'failed': 'Failed',
}


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class RunResult:
    """Outcome of one simulated path."""
    terminal_balance: float
    ruined: bool
    eol_real: float                  # End-of-life value (real adjustment is the caller's job)
    ruin_age: Optional[int] = None
    sequence_id: Optional[str] = None


@dataclass(frozen=True)
class BatchSummary:
    """Statistics over a collection of runs."""
    runs: Tuple[RunResult, ...]
    initial_balance: float
    success_rate: float
    has_data: bool
    percentiles: Mapping[int, Optional[float]]   # read-only view
    buckets: Mapping[str, int]
    failure_count: int
    avg_ruin_age: Optional[float]

    @property
    def total(self) -> int:
        return len(self.runs)

    @property
    def percentile_5(self) -> Optional[float]:
        return self.percentiles.get(5)

    @property
    def median_final(self) -> Optional[float]:
        return self.percentiles.get(50)

    def percentile(self, p: float) -> Optional[float]:
        """Any percentile of terminal balances, same rule as the stored ones."""
        if not self.has_data:
            return None
        return percentile(sorted(r.terminal_balance for r in self.runs), p)


# =============================================================================
# STATISTICS
# =============================================================================

def percentile(data: List[float], p: float) -> float:
    """
    Value at percentile p (0-100) of already sorted data.

    Index is floor(len * p / 100) with no interpolation, so results are
    reproducible to the cent.
    """
    if not data:
        raise ValueError("percentile of empty data")
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be between 0 and 100, got {p}")
    idx = int(len(data) * p / 100)
    return data[min(idx, len(data) - 1)]


def classify_outcome(terminal_balance: float, initial_balance: float) -> str:
    """Bucket key for one run, relative to the starting balance."""
    if terminal_balance <= 0:
        return 'failed'
    if terminal_balance >= initial_balance * 2:
        return 'excellent'
    if terminal_balance >= initial_balance:
        return 'good'
    return 'adequate'


def bucket_counts(runs: Sequence[RunResult], initial_balance: float) -> Dict[str, int]:
    counts = {key: 0 for key in BUCKET_LABELS}
    for run in runs:
        counts[classify_outcome(run.terminal_balance, initial_balance)] += 1
    return counts


# =============================================================================
# AGGREGATION
# =============================================================================

def run_one(params: PortfolioParameters, sequence: ReturnSequence) -> RunResult:
    """Simulate a single sequence and keep only the outcome."""
    ledger = simulate_scenario(params, sequence)
    terminal = ledger.terminal_balance
    return RunResult(
        terminal_balance=terminal,
        ruined=terminal <= 0,
        eol_real=terminal,
        ruin_age=ledger.ruin_age,
        sequence_id=getattr(sequence, 'scenario_id', None),
    )


def summarize(runs: Sequence[RunResult], initial_balance: float,
              report_percentiles: Sequence[int] = REPORT_PERCENTILES) -> BatchSummary:
    """Reduce run results to a BatchSummary. Empty input is reported as no data."""
    runs = tuple(runs)
    total = len(runs)

    if total == 0:
        return BatchSummary(
            runs=runs,
            initial_balance=initial_balance,
            success_rate=0.0,
            has_data=False,
            percentiles=MappingProxyType({p: None for p in report_percentiles}),
            buckets=MappingProxyType(bucket_counts(runs, initial_balance)),
            failure_count=0,
            avg_ruin_age=None,
        )

    failures = [r for r in runs if r.ruined]
    final_values = sorted(r.terminal_balance for r in runs)
    ruin_ages = [r.ruin_age for r in failures if r.ruin_age is not None]

    return BatchSummary(
        runs=runs,
        initial_balance=initial_balance,
        success_rate=(total - len(failures)) / total,
        has_data=True,
        percentiles=MappingProxyType({p: percentile(final_values, p) for p in report_percentiles}),
        buckets=MappingProxyType(bucket_counts(runs, initial_balance)),
        failure_count=len(failures),
        avg_ruin_age=sum(ruin_ages) / len(ruin_ages) if ruin_ages else None,
    )


def aggregate(
    params: PortfolioParameters,
    sequences: Sequence[ReturnSequence],
    max_workers: Optional[int] = None,
    parallel_threshold: int = PARALLEL_THRESHOLD
) -> BatchSummary:
    """
    Simulate every sequence and summarize.

    Runs are independent, so large collections (at least parallel_threshold
    sequences) are spread over worker processes. max_workers=1 forces a
    single process. Results keep the order of `sequences`.
    """
    params.validate()
    sequences = list(sequences)

    if len(sequences) >= parallel_threshold and max_workers != 1 and sequences:
        logger.debug("Fanning out %d runs across worker processes", len(sequences))
        chunksize = max(1, len(sequences) // 64)
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            runs = list(executor.map(run_one, repeat(params), sequences, chunksize=chunksize))
    else:
        runs = [run_one(params, sequence) for sequence in sequences]

    return summarize(runs, params.initial_balance)


def historical_batch(params: PortfolioParameters, **kwargs) -> BatchSummary:
    """Aggregate every rolling window of S&P 500 history over the plan's horizon."""
    params.validate()
    return aggregate(params, rolling_historical_sequences(params.num_years), **kwargs)

#!/usr/bin/env python3
"""
Export simulation results to JSON.

Turns ledgers, batch summaries and scenario definitions into plain dicts
for the API, and can write a full stress-test report to disk:
- Every historical crisis replayed against the plan
- Rolling-window survival statistics over S&P 500 history
- Percentile trajectories and failure examples
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Sequence

from batch_aggregator import BUCKET_LABELS, BatchSummary, historical_batch
from config import DEFAULT_PARAMS
from crisis_scenarios import CRISIS_SCENARIOS, ScenarioDefinition, rolling_historical_sequences
from risk_window import RiskWindow
from withdrawal_simulator import (
    CrisisAnalysis, Ledger, PortfolioParameters, compare_scenarios, simulate_scenario
)


# =============================================================================
# SERIALIZERS
# =============================================================================

def ledger_to_dict(ledger: Ledger) -> Dict[str, Any]:
    return {
        "entries": [asdict(e) for e in ledger.entries],
        "initial_balance": ledger.initial_balance,
        "terminal_balance": ledger.terminal_balance,
        "ruined": ledger.ruined,
        "ruin_age": ledger.ruin_age,
        "worst_drawdown": ledger.worst_drawdown,
        "recovery_year": ledger.recovery_year,
    }


def analysis_to_dict(analysis: CrisisAnalysis) -> Dict[str, Any]:
    return asdict(analysis)


def summary_to_dict(summary: BatchSummary, include_runs: bool = False) -> Dict[str, Any]:
    """
    Batch summary as JSON-friendly data.

    Percentile keys become "p5", "p50" etc. since JSON keys are strings.
    """
    data = {
        "total": summary.total,
        "has_data": summary.has_data,
        "success_rate": summary.success_rate,
        "failure_count": summary.failure_count,
        "avg_ruin_age": summary.avg_ruin_age,
        "initial_balance": summary.initial_balance,
        "percentiles": {f"p{p}": v for p, v in summary.percentiles.items()},
        "buckets": [
            {"key": key, "label": BUCKET_LABELS[key], "count": count}
            for key, count in summary.buckets.items()
        ],
    }
    if include_runs:
        data["runs"] = [asdict(r) for r in summary.runs]
    return data


def scenario_to_dict(scenario: ScenarioDefinition) -> Dict[str, Any]:
    data = asdict(scenario)
    data["yearly_returns"] = list(scenario.yearly_returns)
    data["characteristics"] = list(scenario.characteristics)
    return data


def risk_window_to_dict(window: RiskWindow) -> Dict[str, Any]:
    return {
        "window_start": window.window_start,
        "window_end": window.window_end,
        "start_age": window.start_age,
        "end_age": window.end_age,
        "impact_tier": window.impact_tier,
        "message": window.message,
    }


# =============================================================================
# TRAJECTORIES
# =============================================================================

def calculate_percentile_trajectories(
    ledgers: List[Ledger],
    percentiles: Sequence[int] = (5, 10, 25, 50, 75, 95)
) -> Dict[str, List[float]]:
    """
    Calculate portfolio value at each percentile for each year.

    Ruined paths stop early; they count as zero for the years they missed.
    """
    if not ledgers:
        return {}

    num_years = max(len(l) for l in ledgers)
    trajectories = {"years": list(range(1, num_years + 1))}

    for p in percentiles:
        trajectory = []
        for year_idx in range(num_years):
            values = sorted(
                l.entries[year_idx].portfolio_value if year_idx < len(l) else 0.0
                for l in ledgers
            )
            idx = int(len(values) * p / 100)
            idx = min(idx, len(values) - 1)
            trajectory.append(values[idx])
        trajectories[f"p{p}"] = trajectory

    return trajectories


def get_failure_examples(
    ledgers: List[Ledger],
    max_examples: int = 20
) -> List[Dict[str, Any]]:
    """Failed paths, earliest ruin first (most interesting)."""
    failures = [l for l in ledgers if l.ruined]
    failures.sort(key=lambda l: l.ruin_age)

    return [
        {"ruin_age": l.ruin_age, "trajectory": l.portfolio_values, "ages": l.ages}
        for l in failures[:max_examples]
    ]


# =============================================================================
# FULL REPORT
# =============================================================================

def build_report(params: PortfolioParameters) -> Dict[str, Any]:
    """Everything the stress-test page shows, in one dict."""
    outcomes = compare_scenarios(params, [s.to_sequence() for s in CRISIS_SCENARIOS.values()])
    windows = rolling_historical_sequences(params.num_years)
    window_ledgers = [simulate_scenario(params, seq) for seq in windows]

    return {
        "params": asdict(params),
        "crises": [
            {
                "scenario": scenario_to_dict(CRISIS_SCENARIOS[o.scenario_id]),
                "ledger": ledger_to_dict(o.ledger),
                "analysis": analysis_to_dict(o.analysis),
            }
            for o in outcomes
        ],
        "historical": summary_to_dict(historical_batch(params, max_workers=1)),
        "percentiles": calculate_percentile_trajectories(window_ledgers),
        "failures": get_failure_examples(window_ledgers, max_examples=30),
    }


def run_and_export(params: dict, output_path: str = "stress_report.json") -> Dict[str, Any]:
    """Build the report for a parameter dict and write it as JSON."""
    portfolio = PortfolioParameters.from_dict(params)
    portfolio.validate()

    print(f"Replaying {len(CRISIS_SCENARIOS)} crises and "
          f"{len(rolling_historical_sequences(portfolio.num_years))} historical windows...")
    report = build_report(portfolio)

    output_file = Path(output_path)
    with open(output_file, 'w') as f:
        json.dump(report, f, indent=2)

    historical = report["historical"]
    print(f"\nExported to {output_file}")
    print(f"Historical success rate: {historical['success_rate']:.1%}")
    print(f"Failures: {historical['failure_count']}")

    return report


if __name__ == "__main__":
    run_and_export(DEFAULT_PARAMS)

#!/usr/bin/env python3
"""
Stress Test Runner

This is the main entry point that ties everything together:
- Loads your parameters from config.py
- Replays every historical crisis from crisis_scenarios.py
- Tries each custom crash shape from scenarios.py
- Shows how survival odds look across all of S&P 500 history

Run with: python run_simulation.py
"""

from typing import Dict, List

from batch_aggregator import BUCKET_LABELS, BatchSummary, historical_batch
from config import DEFAULT_PARAMS, SUCCESS_THRESHOLD
from crisis_scenarios import CRISIS_SCENARIOS, rolling_historical_sequences
from risk_window import classify
from scenarios import (
    RECOVERY_SHAPES, SEQUENCE_COMPARISON, CustomScenarioParams, build_custom_scenario
)
from solvers import find_bulletproof_floor, max_sustainable_withdrawal
from withdrawal_simulator import (
    PortfolioParameters, ScenarioOutcome, calculate_withdrawal_rate, compare_scenarios,
    format_currency, simulate_path
)


# =============================================================================
# HISTORICAL CRISES
# =============================================================================

def run_all_scenarios(params: PortfolioParameters) -> List[ScenarioOutcome]:
    """Replay every historical crisis against the plan."""
    return compare_scenarios(params, [s.to_sequence() for s in CRISIS_SCENARIOS.values()])


def run_custom_shapes(params: PortfolioParameters, crash_percent: float = -50,
                      duration_months: int = 18) -> List[ScenarioOutcome]:
    """Same crash, each recovery shape."""
    sequences = [
        build_custom_scenario(CustomScenarioParams(crash_percent, duration_months, shape,
                                                   name=f"{shape}-shaped recovery"))
        for shape in RECOVERY_SHAPES
    ]
    return compare_scenarios(params, sequences)


def print_scenario_comparison(outcomes: List[ScenarioOutcome], title: str = "SCENARIO COMPARISON"):
    """Print a summary table comparing all scenarios."""
    print("\n" + "=" * 72)
    print(title)
    print("=" * 72)
    print(f"\n{'Scenario':<28} {'Final Portfolio':>15} {'Worst DD':>9} {'Survived':>16}")
    print("-" * 72)

    for outcome in outcomes:
        ledger = outcome.ledger
        final = format_currency(ledger.terminal_balance)
        survived = "Yes" if ledger.survived else f"No (age {ledger.ruin_age})"
        print(f"{outcome.name:<28} {final:>15} {ledger.worst_drawdown:>8.1%} {survived:>16}")

    print("-" * 72)


# =============================================================================
# SEQUENCE RISK DEMO
# =============================================================================

def sequence_order_demo(params: PortfolioParameters) -> Dict[str, float]:
    """Same returns, both orders, all stocks. Only the order differs."""
    good = SEQUENCE_COMPARISON
    bad = good.reversed()
    years = len(good)

    results = {}
    for label, seq in (('good', good), ('bad', bad)):
        ledger = simulate_path(params.initial_balance, params.annual_withdrawal,
                               params.current_age, years, seq, 1.0, params.expected_return)
        results[label] = ledger.terminal_balance
    results['average'] = good.mean()
    return results


def print_sequence_demo(results: Dict[str, float]):
    print("\n" + "=" * 72)
    print("SAME AVERAGE, DIFFERENT ORDER")
    print("=" * 72)
    print(f"\nAverage return (both orders): {results['average']:.2f}%")
    print(f"  Good years first: {format_currency(results['good']):>15}")
    print(f"  Bad years first:  {format_currency(results['bad']):>15}")


# =============================================================================
# HISTORICAL SURVIVAL
# =============================================================================

def print_batch_summary(summary: BatchSummary, title: str):
    """Print batch results."""
    print("\n" + "=" * 72)
    print(f"{title} ({summary.total:,} runs)")
    print("=" * 72)

    if not summary.has_data:
        print("\nNo data: the horizon is longer than the available history.")
        return

    print(f"\nSuccess Rate: {summary.success_rate:.1%}")
    if summary.success_rate < 1.0:
        print(f"  ({summary.failure_count} of {summary.total} paths ran out of money)")
        if summary.avg_ruin_age is not None:
            print(f"  Average ruin age: {summary.avg_ruin_age:.0f}")

    print("\nFinal Portfolio Distribution:")
    for p, value in summary.percentiles.items():
        print(f"  {p:>2}th percentile: {format_currency(value):>15}")

    print("\nOutcomes:")
    for key, count in summary.buckets.items():
        print(f"  {BUCKET_LABELS[key]:<18} {count:>5}")


def print_solver_analysis(params: PortfolioParameters):
    """Bulletproof floor and max safe withdrawal over history."""
    sequences = rolling_historical_sequences(params.num_years)
    if not sequences:
        return

    floor = find_bulletproof_floor(params, sequences, SUCCESS_THRESHOLD)
    max_withdrawal = max_sustainable_withdrawal(params, sequences, SUCCESS_THRESHOLD)

    print("\n" + "=" * 72)
    print(f"BULLETPROOF ANALYSIS ({SUCCESS_THRESHOLD:.0%} historical success target)")
    print("=" * 72)

    if floor is None:
        print("\nEven twice your planned portfolio misses the target.")
    else:
        buffer = params.initial_balance - floor
        print(f"\nMinimum safe portfolio: {format_currency(floor)}")
        print(f"Your planned portfolio: {format_currency(params.initial_balance)}")
        print(f"Your buffer:            {format_currency(buffer)}")

    if max_withdrawal is not None:
        print(f"Max safe withdrawal:    {format_currency(max_withdrawal)}/yr "
              f"({calculate_withdrawal_rate(params.initial_balance, max_withdrawal):.1%})")


# =============================================================================
# MAIN
# =============================================================================

def main(raw_params: dict = DEFAULT_PARAMS):
    """Run the full analysis."""
    params = PortfolioParameters.from_dict(raw_params)
    params.validate()

    print("\n" + "=" * 72)
    print("SEQUENCE RISK STRESS TEST")
    print("=" * 72)

    print(f"\nStarting Portfolio: {format_currency(params.initial_balance)}")
    print(f"Annual Withdrawal:  {format_currency(params.annual_withdrawal)}")
    print(f"Withdrawal Rate:    {calculate_withdrawal_rate(params.initial_balance, params.annual_withdrawal):.1%}")
    print(f"Allocation:         {params.stock_allocation:.0%} stocks / {1 - params.stock_allocation:.0%} bonds")
    print(f"Time Horizon:       Age {params.current_age} to {params.end_age} ({params.num_years} years)")
    print(f"Expected Return:    {params.expected_return:.1%}")

    window = classify(params.current_age, raw_params.get('retirement_age', params.current_age), 1)
    print(f"\nCritical window:    Age {window.start_age} to {window.end_age}")

    print_scenario_comparison(run_all_scenarios(params), "HISTORICAL CRISES")
    print_scenario_comparison(run_custom_shapes(params), "CUSTOM -50% CRASH, BY RECOVERY SHAPE")
    print_sequence_demo(sequence_order_demo(params))
    print_batch_summary(historical_batch(params, max_workers=1), "EVERY RETIREMENT YEAR IN S&P 500 HISTORY")
    print_solver_analysis(params)

    print("\n" + "=" * 72)
    print("ANALYSIS COMPLETE")
    print("=" * 72 + "\n")


if __name__ == "__main__":
    main()

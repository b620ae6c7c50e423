#!/usr/bin/env python3
"""
Flask API for the Sequence-Risk Simulator

Provides endpoints to replay historical crises, build custom crash
scenarios, aggregate batches of return sequences and classify risk windows.
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import copy

from batch_aggregator import aggregate, historical_batch
from config import DEFAULT_PARAMS, MAX_BATCH_SEQUENCES, SUCCESS_THRESHOLD
from crisis_scenarios import (
    CRISIS_SCENARIOS, BEAR_MARKET_SCENARIOS, get_scenario, get_scenario_metadata,
    rolling_historical_sequences
)
from export_data import (
    ledger_to_dict, analysis_to_dict, summary_to_dict, scenario_to_dict, risk_window_to_dict
)
from risk_window import classify
from scenarios import CustomScenarioParams, ReturnSequence, build_custom_scenario
from solvers import find_bulletproof_floor, max_sustainable_withdrawal, years_to_target
from withdrawal_simulator import (
    PortfolioParameters, analyze_crisis, compare_scenarios, simulate_scenario
)

app = Flask(__name__)
CORS(app)

PARAM_TYPES = {
    'initial_balance': float,
    'annual_withdrawal': float,
    'stock_allocation': float,
    'bond_allocation': float,
    'expected_return': float,
    'current_age': int,
    'retirement_age': int,
    'end_age': int,
}


def build_params(user_params: dict) -> dict:
    """Start from DEFAULT_PARAMS and override with whatever the caller sent."""
    params = copy.deepcopy(DEFAULT_PARAMS)
    for key, cast in PARAM_TYPES.items():
        if key in user_params:
            params[key] = cast(user_params[key])
    return params


def parse_portfolio(user_params: dict) -> PortfolioParameters:
    portfolio = PortfolioParameters.from_dict(build_params(user_params))
    portfolio.validate()
    return portfolio


def parse_custom_scenario(data: dict) -> CustomScenarioParams:
    return CustomScenarioParams(
        crash_percent=float(data.get('crash_percent', -50)),
        duration_months=int(data.get('duration_months', 18)),
        recovery_shape=str(data.get('recovery_shape', 'U')),
        inflation_rate=float(data.get('inflation_rate', 3)),
        name=str(data.get('name', 'Custom Crash')),
    )


def parse_sequences(raw_sequences: list) -> list:
    """Accept lists of returns (percentage points) or {"id", "name", "returns"} objects."""
    if not isinstance(raw_sequences, list):
        raise ValueError("sequences must be a list")
    if len(raw_sequences) > MAX_BATCH_SEQUENCES:
        raise ValueError(f"At most {MAX_BATCH_SEQUENCES} sequences per request")
    sequences = []
    for i, raw in enumerate(raw_sequences):
        if isinstance(raw, dict):
            returns = raw.get('returns', [])
            if not isinstance(returns, list):
                raise ValueError(f"sequence {i}: returns must be a list of numbers")
            sequences.append(ReturnSequence(tuple(returns),
                                            scenario_id=raw.get('id', f"seq-{i}"),
                                            name=raw.get('name')))
        elif isinstance(raw, list):
            sequences.append(ReturnSequence(tuple(raw), scenario_id=f"seq-{i}"))
        else:
            raise ValueError(f"sequence {i} must be a list of returns or an object with 'returns'")
    return sequences


def resolve_sequence(data: dict) -> ReturnSequence:
    """Pick the sequence for a single-path request: scenario id, custom crash, or raw returns."""
    if 'scenario_id' in data:
        return get_scenario(data['scenario_id']).to_sequence()
    if 'custom_scenario' in data:
        return build_custom_scenario(parse_custom_scenario(data['custom_scenario']))
    if 'returns' in data:
        return ReturnSequence(tuple(data['returns']), scenario_id='user', name='User sequence')
    return ReturnSequence((), scenario_id='baseline', name='Expected return only')


# =============================================================================
# ERROR HANDLING
# =============================================================================

@app.errorhandler(ValueError)
def handle_bad_input(e):
    app.logger.warning("Rejected request to %s: %s", request.path, e)
    return jsonify({"error": str(e)}), 400


@app.errorhandler(KeyError)
def handle_missing_field(e):
    app.logger.warning("Missing field in request to %s: %s", request.path, e)
    return jsonify({"error": f"Missing field: {e.args[0]}"}), 400


@app.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return e
    app.logger.exception("Unhandled error on %s", request.path)
    return jsonify({"error": str(e)}), 500


# =============================================================================
# ROUTES
# =============================================================================

@app.route('/api/defaults', methods=['GET'])
def get_defaults():
    """Return default parameters so frontend can initialize inputs."""
    return jsonify(DEFAULT_PARAMS)


@app.route('/api/scenarios', methods=['GET'])
def list_scenarios():
    """Crisis scenarios (metadata only) and bear market presets."""
    return jsonify({
        "scenarios": [get_scenario_metadata(sid) for sid in CRISIS_SCENARIOS],
        "bear_markets": BEAR_MARKET_SCENARIOS,
    })


@app.route('/api/scenarios/<scenario_id>', methods=['GET'])
def scenario_detail(scenario_id):
    if scenario_id not in CRISIS_SCENARIOS:
        return jsonify({"error": f"Unknown scenario: {scenario_id}"}), 404
    return jsonify(scenario_to_dict(get_scenario(scenario_id)))


@app.route('/api/simulate', methods=['POST'])
def simulate():
    """
    Run one path and compare it with the expected-return baseline.

    Body: portfolio overrides plus one of scenario_id, custom_scenario or returns.
    """
    data = request.get_json(silent=True) or {}
    portfolio = parse_portfolio(data)
    sequence = resolve_sequence(data)

    ledger = simulate_scenario(portfolio, sequence)
    baseline = simulate_scenario(portfolio, ())

    return jsonify({
        "scenario_id": sequence.scenario_id,
        "returns": list(sequence.returns),
        "ledger": ledger_to_dict(ledger),
        "baseline": ledger_to_dict(baseline),
        "analysis": analysis_to_dict(analyze_crisis(ledger, baseline)),
    })


@app.route('/api/custom-scenario', methods=['POST'])
def custom_scenario():
    """Just the synthesized return sequence for a custom crash."""
    data = request.get_json(silent=True) or {}
    params = parse_custom_scenario(data)
    sequence = build_custom_scenario(params)
    return jsonify({
        "returns": list(sequence.returns),
        "inflation_rate": params.inflation_rate,
        "name": params.name,
    })


@app.route('/api/stress-test', methods=['POST'])
def stress_test():
    """Replay every historical crisis against the plan."""
    data = request.get_json(silent=True) or {}
    portfolio = parse_portfolio(data)
    outcomes = compare_scenarios(portfolio, [s.to_sequence() for s in CRISIS_SCENARIOS.values()])

    return jsonify({
        "results": [
            {
                "scenario_id": o.scenario_id,
                "name": o.name,
                "final_value": o.ledger.terminal_balance,
                "survives": o.analysis.survives,
                "worst_drawdown": o.analysis.worst_drawdown,
                "recovery_year": o.analysis.recovery_year,
                "ledger": ledger_to_dict(o.ledger),
            }
            for o in outcomes
        ],
        "survived": sum(1 for o in outcomes if o.analysis.survives),
        "total": len(outcomes),
    })


@app.route('/api/batch', methods=['POST'])
def batch():
    """
    Aggregate a collection of return sequences.

    Body: portfolio overrides plus "sequences" (each a list of returns in
    percentage points). Without sequences, every rolling window of S&P 500
    history is used.
    """
    data = request.get_json(silent=True) or {}
    portfolio = parse_portfolio(data)
    include_runs = bool(data.get('include_runs', False))

    if 'sequences' in data:
        summary = aggregate(portfolio, parse_sequences(data['sequences']))
    else:
        summary = historical_batch(portfolio)

    app.logger.info("Batch of %d runs, success rate %.3f", summary.total, summary.success_rate)
    return jsonify(summary_to_dict(summary, include_runs=include_runs))


@app.route('/api/risk-window', methods=['POST'])
def risk_window():
    data = request.get_json(silent=True) or {}
    params = build_params(data)
    window = classify(
        params['current_age'],
        params['retirement_age'],
        int(data.get('crash_year', 1)),
    )
    return jsonify(risk_window_to_dict(window))


@app.route('/api/solve/years-to-target', methods=['POST'])
def solve_years_to_target():
    data = request.get_json(silent=True) or {}
    projection = years_to_target(
        balance=float(data['balance']),
        target=float(data['target']),
        annual_return=float(data.get('annual_return', DEFAULT_PARAMS['expected_return'])),
        annual_contribution=float(data.get('annual_contribution', 0)),
        max_years=int(data.get('max_years', 100)),
    )
    return jsonify({
        "reachable": projection.reachable,
        "years": projection.years,
        "iterations": projection.iterations,
    })


@app.route('/api/solve/floor', methods=['POST'])
def solve_floor():
    """Minimum starting balance and max withdrawal for the target success rate."""
    data = request.get_json(silent=True) or {}
    portfolio = parse_portfolio(data)
    target = float(data.get('target_success_rate', SUCCESS_THRESHOLD))

    if 'sequences' in data:
        sequences = parse_sequences(data['sequences'])
    else:
        sequences = rolling_historical_sequences(portfolio.num_years)
    if not sequences:
        raise ValueError("No sequences available for this horizon")

    return jsonify({
        "target_success_rate": target,
        "bulletproof_floor": find_bulletproof_floor(portfolio, sequences, target),
        "max_sustainable_withdrawal": max_sustainable_withdrawal(portfolio, sequences, target),
    })


if __name__ == '__main__':
    print("Starting Sequence-Risk Simulator API on http://localhost:5000")
    app.run(debug=True, port=5000)

import math
from itertools import permutations

import pytest

from crisis_scenarios import get_scenario
from scenarios import ReturnSequence
from withdrawal_simulator import (
    PortfolioParameters, SimulationInputError, analyze_crisis, bond_return_for_year,
    calculate_withdrawal_rate, compare_scenarios, format_currency, simulate_path,
    simulate_scenario, simulate_single_year,
)

SEQUENCE_2008 = [5.5, -37.0, 26.5, 15.1, 2.1, 16.0, 32.4]


def _start_balances(ledger):
    starts = [ledger.initial_balance]
    starts.extend(e.portfolio_value for e in ledger.entries[:-1])
    return starts


class TestFourPercentRuleThrough2008:
    def test_first_two_years_to_the_cent(self):
        ledger = simulate_path(1_000_000, 40_000, 65, 7, SEQUENCE_2008, 0.6, 0.07)

        assert ledger[0].portfolio_value == pytest.approx(999_360.00, abs=0.005)
        assert ledger[1].portfolio_value == pytest.approx(754_056.96, abs=0.005)

    def test_blended_returns(self):
        ledger = simulate_path(1_000_000, 40_000, 65, 7, SEQUENCE_2008, 0.6, 0.07)

        assert ledger[0].market_return == pytest.approx(0.041)
        assert ledger[1].market_return == pytest.approx(-0.214)
        # Year 4 onwards the bond leg earns 4%
        assert ledger[3].market_return == pytest.approx(0.6 * 0.151 + 0.4 * 0.04)

    def test_ages_and_years(self):
        ledger = simulate_path(1_000_000, 40_000, 65, 7, SEQUENCE_2008, 0.6, 0.07)

        assert [e.year for e in ledger] == [1, 2, 3, 4, 5, 6, 7]
        assert [e.age for e in ledger] == [65, 66, 67, 68, 69, 70, 71]


def test_bond_schedule():
    assert [bond_return_for_year(i) for i in range(5)] == [0.02, 0.02, 0.02, 0.04, 0.04]


def test_withdraw_before_growth():
    # (100 - 10) * 1.1, not 100 * 1.1 - 10
    balance, withdrawal = simulate_single_year(100, 10, 0.10)
    assert balance == pytest.approx(99.0)
    assert withdrawal == 10


def test_withdrawal_capped_and_run_stops_at_ruin():
    ledger = simulate_path(50, 100, 70, 10, [0.0] * 10, 1.0, 0.0)

    assert len(ledger) == 1
    assert ledger[0].withdrawal == 50
    assert ledger[0].portfolio_value == 0
    assert ledger.ruined
    assert ledger.ruin_age == 70
    assert ledger.terminal_balance == 0


def test_ruin_midway_keeps_earlier_years():
    ledger = simulate_path(100_000, 30_000, 65, 30, [-50, -50], 1.0, 0.0)

    assert ledger.ruined
    assert len(ledger) < 30
    assert all(e.portfolio_value > 0 for e in ledger.entries[:-1])


def test_balance_never_negative_and_withdrawal_never_exceeds_balance():
    harsh = [-43.84, -8.64, -25.12, -60.0, -99.0, 10.0]
    ledger = simulate_path(300_000, 80_000, 60, 30, harsh, 0.9, -0.05)

    for entry, start in zip(ledger.entries, _start_balances(ledger)):
        assert entry.portfolio_value >= 0
        assert entry.withdrawal <= start


def test_return_below_minus_100_percent_is_floored():
    ledger = simulate_path(1_000, 0, 65, 3, [-150.0], 1.0, 0.05)

    assert ledger[0].portfolio_value == 0
    assert ledger.ruined


def test_drawdown_tracks_running_peak():
    ledger = simulate_path(1_000_000, 40_000, 65, 20, get_scenario('great-depression').yearly_returns,
                           0.6, 0.07)

    peak = ledger.initial_balance
    for entry in ledger:
        peak = max(peak, entry.portfolio_value)
        assert 0 <= entry.drawdown <= 1
        assert entry.drawdown == pytest.approx((peak - entry.portfolio_value) / peak)


def test_drawdown_zero_when_everything_is_zero():
    ledger = simulate_path(0, 0, 65, 5, [], 0.6, 0.07)

    assert ledger[0].drawdown == 0
    assert ledger.ruined


def test_cumulative_return_is_running_product():
    ledger = simulate_path(1_000_000, 40_000, 65, 10, SEQUENCE_2008, 0.6, 0.05)

    growth = 1.0
    for entry in ledger:
        growth *= 1 + entry.market_return
        assert entry.cumulative_return == pytest.approx(growth - 1)


def test_expected_return_used_after_sequence():
    ledger = simulate_path(1_000_000, 0, 65, 4, [10.0, 10.0], 0.5, 0.07)

    assert [e.is_recovering for e in ledger] == [False, False, True, True]
    assert ledger[2].market_return == 0.07
    assert ledger[3].market_return == 0.07


class TestValidation:
    @pytest.mark.parametrize('kwargs', [
        {'initial_balance': -1},
        {'annual_withdrawal': -1},
        {'num_years': 0},
        {'num_years': -3},
        {'stock_allocation': 1.5},
        {'stock_allocation': -0.1},
        {'expected_return': float('nan')},
        {'initial_balance': float('inf')},
    ])
    def test_rejected_before_simulating(self, kwargs):
        args = dict(initial_balance=1000, annual_withdrawal=40, start_age=65, num_years=10,
                    explicit_returns=[], stock_allocation=0.6, expected_return=0.05)
        args.update(kwargs)
        with pytest.raises(SimulationInputError):
            simulate_path(**args)

    def test_non_finite_return_rejected(self):
        with pytest.raises(ValueError):
            simulate_path(1000, 40, 65, 10, [5.0, float('nan')], 0.6, 0.05)

    def test_end_before_start(self):
        params = PortfolioParameters(1000, 40, current_age=70, end_age=65)
        with pytest.raises(SimulationInputError):
            params.validate()


class TestSequenceRisk:
    def test_order_irrelevant_without_withdrawals(self):
        returns = [12.0, -30.0, 5.0, 20.0]
        expected = simulate_path(1_000_000, 0, 65, 4, returns, 1.0, 0.0).terminal_balance
        for p in permutations(returns):
            terminal = simulate_path(1_000_000, 0, 65, 4, list(p), 1.0, 0.0).terminal_balance
            assert terminal == pytest.approx(expected)

    def test_reversal_changes_outcome_with_withdrawals(self):
        seq = ReturnSequence((-30.0, -10.0, 5.0, 20.0, 25.0))
        rev = seq.reversed()

        assert seq.mean() == pytest.approx(rev.mean())
        early_crash = simulate_path(1_000_000, 60_000, 65, 5, seq, 1.0, 0.0).terminal_balance
        late_crash = simulate_path(1_000_000, 60_000, 65, 5, rev, 1.0, 0.0).terminal_balance
        assert early_crash < late_crash


def test_simulate_scenario_uses_parameters(default_params):
    ledger = simulate_scenario(default_params, get_scenario('2008-crisis').to_sequence())

    assert len(ledger) == default_params.num_years
    assert ledger[0].portfolio_value == pytest.approx(999_360.00, abs=0.005)


def test_recovery_year():
    ledger = simulate_path(100, 0, 65, 3, [-20.0, 30.0, 30.0], 1.0, 0.0)
    assert ledger.recovery_year == 1


def test_analyze_crisis(default_params):
    crisis = simulate_scenario(default_params, get_scenario('great-depression').to_sequence())
    baseline = simulate_scenario(default_params, ())
    analysis = analyze_crisis(crisis, baseline)

    assert analysis.final_value_crisis == crisis.terminal_balance
    assert analysis.final_value_baseline == baseline.terminal_balance
    assert analysis.value_difference == pytest.approx(crisis.terminal_balance - baseline.terminal_balance)
    assert analysis.worst_drawdown == crisis.worst_drawdown
    assert analysis.survives == (crisis.terminal_balance > 0)
    assert analysis.years_lost >= 0


def test_compare_scenarios(default_params):
    sequences = [get_scenario(sid).to_sequence() for sid in ('2008-crisis', 'japan-lost-decade')]
    outcomes = compare_scenarios(default_params, sequences)

    assert [o.scenario_id for o in outcomes] == ['2008-crisis', 'japan-lost-decade']
    assert all(0 <= o.analysis.worst_drawdown <= 1 for o in outcomes)


def test_from_dict(default_params):
    assert default_params.initial_balance == 1_000_000
    assert default_params.num_years == 30


def test_withdrawal_rate_and_currency():
    assert calculate_withdrawal_rate(1_000_000, 40_000) == pytest.approx(0.04)
    assert math.isinf(calculate_withdrawal_rate(0, 40_000))
    assert format_currency(1234567.4) == "$1,234,567"

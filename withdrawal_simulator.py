"""
Withdrawal Simulation Engine

This is the core logic that walks a portfolio year by year through a
sequence of market returns while taking a fixed withdrawal.

The order of operations is the whole story: money comes out at the start of
each year, BEFORE that year's return is applied. A crash early on hits a
base that withdrawals have already shrunk, and the recovery compounds from
that smaller base.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import BOND_RETURN_SCHEDULE, BOND_RETURN_AFTER_SCHEDULE
from scenarios import ReturnSequence


class SimulationInputError(ValueError):
    """Raised when simulation inputs are rejected before the first step."""


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class PortfolioParameters:
    """Everything about the investor that a simulation needs."""
    initial_balance: float
    annual_withdrawal: float
    stock_allocation: float = 0.6
    bond_allocation: float = 0.4
    expected_return: float = 0.07
    current_age: int = 65
    end_age: int = 95

    @property
    def num_years(self) -> int:
        return self.end_age - self.current_age

    @classmethod
    def from_dict(cls, params: dict) -> 'PortfolioParameters':
        """Build from a config-style dict (see config.DEFAULT_PARAMS)."""
        return cls(
            initial_balance=float(params['initial_balance']),
            annual_withdrawal=float(params['annual_withdrawal']),
            stock_allocation=float(params.get('stock_allocation', 0.6)),
            bond_allocation=float(params.get('bond_allocation', 0.4)),
            expected_return=float(params.get('expected_return', 0.07)),
            current_age=int(params['current_age']),
            end_age=int(params['end_age']),
        )

    def validate(self):
        if self.end_age < self.current_age:
            raise SimulationInputError(
                f"end_age ({self.end_age}) must not be before current_age ({self.current_age})"
            )
        _validate_inputs(self.initial_balance, self.annual_withdrawal, self.num_years,
                         self.stock_allocation, self.expected_return)


@dataclass(frozen=True)
class LedgerEntry:
    """One simulated year."""
    year: int                  # 1-based year of the simulation
    age: int                   # Age at the start of the year
    portfolio_value: float     # Balance at the end of the year, never negative
    withdrawal: float          # Amount actually withdrawn (capped by balance)
    market_return: float       # Blended return applied this year (fraction)
    cumulative_return: float   # Running product of (1 + r), minus 1
    drawdown: float            # Decline from the running peak, 0..1
    is_recovering: bool        # Past the explicit sequence, on expected return


@dataclass(frozen=True)
class Ledger:
    """
    Year-by-year record of one simulated path.

    Ruin policy: the path stops in the year the balance hits zero. That year
    is recorded with a zero balance and nothing after it is.
    """
    entries: Tuple[LedgerEntry, ...]
    initial_balance: float

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index):
        return self.entries[index]

    @property
    def terminal_balance(self) -> float:
        """Ending balance (the initial balance if no year was simulated)."""
        if not self.entries:
            return self.initial_balance
        return self.entries[-1].portfolio_value

    @property
    def ruined(self) -> bool:
        return bool(self.entries) and self.entries[-1].portfolio_value <= 0

    @property
    def ruin_age(self) -> Optional[int]:
        """Age in the year money ran out (None if it never did)."""
        return self.entries[-1].age if self.ruined else None

    @property
    def survived(self) -> bool:
        return not self.ruined

    @property
    def worst_drawdown(self) -> float:
        return max((e.drawdown for e in self.entries), default=0.0)

    @property
    def recovery_year(self) -> Optional[int]:
        """
        Index of the first year the balance climbs back to the starting value
        after having been below it. None if it never does.
        """
        for i in range(1, len(self.entries)):
            if (self.entries[i].portfolio_value >= self.initial_balance
                    and self.entries[i - 1].portfolio_value < self.initial_balance):
                return i
        return None

    @property
    def portfolio_values(self) -> List[float]:
        return [e.portfolio_value for e in self.entries]

    @property
    def ages(self) -> List[int]:
        return [e.age for e in self.entries]


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_inputs(initial_balance: float, annual_withdrawal: float, num_years: int,
                     stock_allocation: float, expected_return: float):
    if not math.isfinite(initial_balance) or initial_balance < 0:
        raise SimulationInputError(f"initial_balance must be a non-negative number, got {initial_balance}")
    if not math.isfinite(annual_withdrawal) or annual_withdrawal < 0:
        raise SimulationInputError(f"annual_withdrawal must be a non-negative number, got {annual_withdrawal}")
    if num_years < 1:
        raise SimulationInputError(f"num_years must be at least 1, got {num_years}")
    if not math.isfinite(stock_allocation) or not 0 <= stock_allocation <= 1:
        raise SimulationInputError(f"stock_allocation must be between 0 and 1, got {stock_allocation}")
    if not math.isfinite(expected_return):
        raise SimulationInputError(f"expected_return must be finite, got {expected_return}")


# =============================================================================
# CORE SIMULATION LOGIC
# =============================================================================

def bond_return_for_year(year_index: int) -> float:
    """Bond leg of the blend for a 0-based year inside the explicit sequence."""
    if year_index < len(BOND_RETURN_SCHEDULE):
        return BOND_RETURN_SCHEDULE[year_index]
    return BOND_RETURN_AFTER_SCHEDULE


def blended_return(year_index: int, explicit_returns: Sequence[float],
                   stock_allocation: float, expected_return: float) -> Tuple[float, bool]:
    """
    Portfolio return for a year, and whether it came from the fallback.

    Inside the explicit sequence the stock return is blended with the bond
    schedule. Past it, expected_return is used as-is: it is already a whole
    portfolio figure.
    """
    if year_index < len(explicit_returns):
        stock_return = explicit_returns[year_index] / 100
        bond_return = bond_return_for_year(year_index)
        return stock_allocation * stock_return + (1 - stock_allocation) * bond_return, False
    return expected_return, True


def simulate_single_year(balance: float, withdrawal_request: float,
                         year_return: float) -> Tuple[float, float]:
    """
    Simulate one year of retirement.

    The order matters here:
    1. You withdraw what you need (never more than what's there)
    2. What's left grows (or shrinks) with the market

    Returns:
        (new balance, withdrawal actually taken)
    """
    withdrawal = min(withdrawal_request, balance)
    balance -= withdrawal
    balance *= (1 + year_return)
    return max(0.0, balance), withdrawal


def simulate_path(
    initial_balance: float,
    annual_withdrawal: float,
    start_age: int,
    num_years: int,
    explicit_returns: Sequence[float],
    stock_allocation: float,
    expected_return: float
) -> Ledger:
    """
    Walk a portfolio through a return sequence, one year at a time.

    Args:
        initial_balance: Portfolio at the start
        annual_withdrawal: Fixed nominal withdrawal taken at the start of each year
        start_age: Age in the first simulated year
        num_years: Horizon in years
        explicit_returns: Stock returns in percentage points (a ReturnSequence or any sequence)
        stock_allocation: Fraction in stocks; the rest earns the bond schedule
        expected_return: Whole-portfolio return (fraction) once explicit_returns runs out

    Returns:
        Ledger with one entry per simulated year, stopping at ruin
    """
    _validate_inputs(initial_balance, annual_withdrawal, num_years, stock_allocation, expected_return)
    if not isinstance(explicit_returns, ReturnSequence):
        explicit_returns = ReturnSequence(tuple(explicit_returns))

    balance = float(initial_balance)
    peak = balance
    growth = 1.0
    entries = []

    for i in range(num_years):
        year_return, is_recovering = blended_return(i, explicit_returns, stock_allocation, expected_return)

        balance, withdrawal = simulate_single_year(balance, annual_withdrawal, year_return)

        growth *= (1 + year_return)
        peak = max(peak, balance)
        drawdown = (peak - balance) / peak if peak > 0 else 0.0

        entries.append(LedgerEntry(
            year=i + 1,
            age=start_age + i,
            portfolio_value=balance,
            withdrawal=withdrawal,
            market_return=year_return,
            cumulative_return=growth - 1,
            drawdown=drawdown,
            is_recovering=is_recovering,
        ))

        # Money ran out - stop here
        if balance <= 0:
            break

    return Ledger(entries=tuple(entries), initial_balance=float(initial_balance))


def simulate_scenario(params: PortfolioParameters, sequence: Sequence[float]) -> Ledger:
    """Run simulate_path with everything taken from PortfolioParameters."""
    params.validate()
    return simulate_path(
        initial_balance=params.initial_balance,
        annual_withdrawal=params.annual_withdrawal,
        start_age=params.current_age,
        num_years=params.num_years,
        explicit_returns=sequence,
        stock_allocation=params.stock_allocation,
        expected_return=params.expected_return,
    )


# =============================================================================
# CRISIS ANALYSIS
# =============================================================================

@dataclass(frozen=True)
class CrisisAnalysis:
    """How a crisis path compares to the no-crisis path."""
    final_value_crisis: float
    final_value_baseline: float
    value_difference: float
    worst_drawdown: float
    recovery_year: Optional[int]
    survives: bool
    years_lost: int


def analyze_crisis(crisis: Ledger, baseline: Ledger) -> CrisisAnalysis:
    """
    Compare a crisis path with the baseline (expected-return only) path.

    years_lost is how many years earlier the baseline path would already have
    been down to the crisis path's final value.
    """
    if not crisis.entries or not baseline.entries:
        return CrisisAnalysis(0.0, 0.0, 0.0, 0.0, None, False, 0)

    final_crisis = crisis.terminal_balance
    final_baseline = baseline.terminal_balance

    first_below = next(
        (i for i, e in enumerate(baseline.entries) if e.portfolio_value <= final_crisis), -1
    )
    years_lost = first_below - len(crisis.entries)

    return CrisisAnalysis(
        final_value_crisis=final_crisis,
        final_value_baseline=final_baseline,
        value_difference=final_crisis - final_baseline,
        worst_drawdown=crisis.worst_drawdown,
        recovery_year=crisis.recovery_year,
        survives=final_crisis > 0,
        years_lost=max(0, years_lost),
    )


@dataclass(frozen=True)
class ScenarioOutcome:
    """One row of a stress-test comparison."""
    scenario_id: Optional[str]
    name: Optional[str]
    ledger: Ledger
    analysis: CrisisAnalysis


def compare_scenarios(params: PortfolioParameters,
                      sequences: Sequence[ReturnSequence]) -> List[ScenarioOutcome]:
    """Run every sequence and the baseline, and analyze each against it."""
    baseline = simulate_scenario(params, ())
    outcomes = []
    for sequence in sequences:
        ledger = simulate_scenario(params, sequence)
        outcomes.append(ScenarioOutcome(
            scenario_id=sequence.scenario_id,
            name=sequence.name,
            ledger=ledger,
            analysis=analyze_crisis(ledger, baseline),
        ))
    return outcomes


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def calculate_withdrawal_rate(portfolio: float, withdrawal: float) -> float:
    """
    Calculate the withdrawal rate - the key retirement metric.

    The "4% rule" says withdrawing 4% of your portfolio annually is safe.
    Lower = safer. Higher = riskier.
    """
    if portfolio <= 0:
        return float('inf')
    return max(0.0, withdrawal) / portfolio


def format_currency(amount: float) -> str:
    """Format a number as dollars with thousands separators."""
    return f"${amount:,.0f}"


# =============================================================================
# QUICK TEST
# =============================================================================

if __name__ == "__main__":
    from config import DEFAULT_PARAMS
    from crisis_scenarios import get_scenario

    params = PortfolioParameters.from_dict(DEFAULT_PARAMS)
    scenario = get_scenario('2008-crisis')
    ledger = simulate_scenario(params, scenario.to_sequence())

    print(f"=== {scenario.name} ===\n")
    print(f"Starting Portfolio: {format_currency(params.initial_balance)}")
    print(f"Annual Withdrawal:  {format_currency(params.annual_withdrawal)}")
    print(f"Withdrawal Rate:    {calculate_withdrawal_rate(params.initial_balance, params.annual_withdrawal):.1%}")
    print()
    for entry in ledger.entries[:10]:
        print(f"  Age {entry.age}: {format_currency(entry.portfolio_value):>15}  "
              f"return {entry.market_return:+.1%}  drawdown {entry.drawdown:.1%}")
    print(f"\nSurvived: {'Yes' if ledger.survived else f'No (age {ledger.ruin_age})'}")
    print(f"Final Portfolio: {format_currency(ledger.terminal_balance)}")

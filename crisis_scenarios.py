"""
Historical Crisis Scenarios for Stress Testing

Defines the market crises a retirement plan is replayed through, and the
S&P 500 return history they come from. Everything here is static data:
the numbers are what actually happened, not a model of it.

Returns are annual, in percentage points.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Tuple

from scenarios import ReturnSequence


# =============================================================================
# SCENARIO DEFINITION
# =============================================================================

@dataclass(frozen=True)
class ScenarioDefinition:
    """A named historical crisis with its yearly return sequence."""
    id: str
    name: str
    short_name: str
    period: str
    peak_to_trough: float            # Maximum drawdown, percent
    duration_months: int             # Months to bottom
    recovery_months: int             # Months to recover to previous peak
    description: str
    yearly_returns: Tuple[float, ...]
    characteristics: Tuple[str, ...] = field(default_factory=tuple)

    def to_sequence(self) -> ReturnSequence:
        return ReturnSequence(self.yearly_returns, scenario_id=self.id, name=self.name)

    @property
    def recovery_years(self) -> int:
        return round(self.recovery_months / 12)


# =============================================================================
# CRISIS TABLE
# =============================================================================

CRISIS_SCENARIOS: Dict[str, ScenarioDefinition] = {
    'great-depression': ScenarioDefinition(
        id='great-depression',
        name='Great Depression',
        short_name='1929 Crash',
        period='1929-1932',
        peak_to_trough=-86.2,
        duration_months=34,
        recovery_months=267,  # 22+ years to fully recover
        description=(
            'The worst stock market crash in history. '
            'Markets lost 86% of their value over 3 years.'
        ),
        yearly_returns=(-8.4, -24.9, -43.3, -8.2, -25.1, 53.9, 47.6, -35.0, 28.5, 25.2),
        characteristics=(
            'Bank failures wiped out savings',
            '25% unemployment at peak',
            'Deflation of ~10% annually',
            'Took 25 years for full recovery',
        ),
    ),
    '2008-crisis': ScenarioDefinition(
        id='2008-crisis',
        name='2008 Financial Crisis',
        short_name='2008 Crisis',
        period='2007-2009',
        peak_to_trough=-56.8,
        duration_months=17,
        recovery_months=49,
        description=(
            'Housing bubble collapse triggered a global financial meltdown. '
            'S&P 500 lost 57% from peak.'
        ),
        yearly_returns=(5.5, -37.0, 26.5, 15.1, 2.1, 16.0, 32.4),
        characteristics=(
            'Housing prices fell 33%',
            'Major banks collapsed/rescued',
            'Credit markets froze',
            '4 years to full recovery',
        ),
    ),
    'stagflation-70s': ScenarioDefinition(
        id='stagflation-70s',
        name='1970s Stagflation',
        short_name='Stagflation',
        period='1973-1982',
        peak_to_trough=-48.2,
        duration_months=21,
        recovery_months=96,
        description=(
            'A decade of high inflation, oil shocks, and stagnant growth. '
            'Real returns were devastated.'
        ),
        yearly_returns=(-14.7, -26.5, 37.2, 23.8, -7.2, 6.6, 18.4, 32.4, -4.9, 21.4),
        characteristics=(
            'Inflation peaked at 14.8%',
            'Oil prices quadrupled',
            'Negative real returns for decade',
            'Bond investors devastated',
        ),
    ),
    'japan-lost-decade': ScenarioDefinition(
        id='japan-lost-decade',
        name="Japan's Lost Decades",
        short_name='Japan 1990s',
        period='1990-2012',
        peak_to_trough=-81.9,
        duration_months=240,
        recovery_months=408,  # Still not fully recovered in real terms
        description=(
            'Japanese markets crashed 80%+ and never fully recovered. '
            'A warning about prolonged stagnation.'
        ),
        yearly_returns=(-39.0, 0.6, -25.6, 2.5, 13.2, 0.5, -18.6, -27.4, 36.0, 7.6),
        characteristics=(
            'Real estate bubble burst',
            'Deflation for 20+ years',
            'Zombie companies persisted',
            'Still below 1989 peak (inflation-adjusted)',
        ),
    ),
}


# =============================================================================
# S&P 500 HISTORY
# =============================================================================

SP500_START_YEAR = 1928
SP500_END_YEAR = 2024

# Total annual returns, 1928-2024
SP500_ANNUAL_RETURNS: Tuple[float, ...] = (
    # 1928-1940
    43.81, -8.30, -25.12, -43.84, -8.64, 49.98, -1.19, 46.74, 31.94, 35.34, -35.34, 29.28, -1.10,
    # 1941-1960
    -12.77, 19.17, 25.06, 19.03, 35.82, -8.43, 5.20, 5.70, 18.30, 30.81, 23.68, 14.37, -1.21, 52.56,
    31.24, 18.15, -0.73, 23.68, 52.40, 31.74,
    # 1961-1980
    26.63, -8.81, 22.61, 16.42, 12.40, -10.06, 23.80, 10.81, -8.24, -14.31, 3.56, 14.22, 18.76,
    -14.31, -25.90, 37.00, 23.83, -7.18, 6.56, 18.44,
    # 1981-2000
    -4.70, 20.42, 22.34, 6.15, 31.24, 18.49, 5.81, 16.54, 31.48, -3.06, 30.23, 7.49, 9.97, 1.33,
    37.20, 22.68, 33.10, 28.34, 20.89, -9.03,
    # 2001-2020
    -11.85, -21.97, 28.36, 10.74, 4.83, 15.61, 5.48, -36.55, 25.94, 14.82, 2.10, 15.89, 32.15,
    13.52, 1.36, 11.77, 21.61, -4.23, 31.21, 18.02,
    # 2021-2024
    28.47, -18.04, 26.06, 25.02,
)


def historical_returns(start_year: int, years: int) -> ReturnSequence:
    """
    Actual S&P 500 returns for `years` years starting at `start_year`.

    Truncated at the end of the data, so the result may be shorter than asked.
    """
    if start_year < SP500_START_YEAR or start_year > SP500_END_YEAR:
        raise ValueError(f"No S&P 500 data for {start_year} ({SP500_START_YEAR}-{SP500_END_YEAR})")
    start = start_year - SP500_START_YEAR
    return ReturnSequence(
        SP500_ANNUAL_RETURNS[start:start + years],
        scenario_id=f"sp500-{start_year}",
        name=f"Retire in {start_year}",
    )


def rolling_historical_sequences(years: int) -> List[ReturnSequence]:
    """
    Every complete `years`-long window of S&P 500 history.

    This is the deterministic "what if I had retired in year X" batch:
    one sequence per possible retirement year with a full horizon of data.
    """
    if years < 1:
        raise ValueError(f"years must be at least 1, got {years}")
    last_start = SP500_END_YEAR - years + 1
    return [historical_returns(start_year, years)
            for start_year in range(SP500_START_YEAR, last_start + 1)]


# =============================================================================
# BEAR MARKET PRESETS
# =============================================================================

BEAR_MARKET_SCENARIOS: List[Dict[str, Any]] = [
    {'year': 1929, 'label': 'Great Depression', 'description': '-43.8% → -8.3% → -25.1%',
     'risk': 'extreme', 'first_year': '-43.8%'},
    {'year': 1973, 'label': 'Oil Crisis', 'description': '-14.3% → -25.9% bear market',
     'risk': 'high', 'first_year': '-14.3%'},
    {'year': 1987, 'label': 'Black Monday', 'description': 'Single-day crash, quick recovery',
     'risk': 'medium', 'first_year': '+5.8%'},
    {'year': 2000, 'label': 'Dot-com Crash', 'description': '-9.0% → -11.9% → -22.0%',
     'risk': 'high', 'first_year': '-9.0%'},
    {'year': 2001, 'label': '9/11 Recession', 'description': 'Tech bust continues',
     'risk': 'high', 'first_year': '-11.9%'},
    {'year': 2008, 'label': 'Financial Crisis', 'description': '-36.6% worst year since 1931',
     'risk': 'extreme', 'first_year': '-36.6%'},
    {'year': 2022, 'label': 'Inflation Shock', 'description': '-18.0% stocks + bonds down',
     'risk': 'medium', 'first_year': '-18.0%'},
]


def get_bear_returns(year: int) -> List[float]:
    """
    Three years of returns starting at `year`, for dropping a bear market
    into an otherwise normal plan. Out-of-range years give [0, 0, 0].
    """
    start = year - SP500_START_YEAR
    if start < 0 or start + 2 >= len(SP500_ANNUAL_RETURNS):
        return [0.0, 0.0, 0.0]
    return list(SP500_ANNUAL_RETURNS[start:start + 3])


def get_bear_market_scenario(year: int) -> Dict[str, Any]:
    for scenario in BEAR_MARKET_SCENARIOS:
        if scenario['year'] == year:
            return scenario.copy()
    raise ValueError(f"Unknown bear market year: {year}")


# =============================================================================
# LOOKUPS
# =============================================================================

def get_scenario(scenario_id: str) -> ScenarioDefinition:
    """Get a crisis scenario by id."""
    if scenario_id not in CRISIS_SCENARIOS:
        raise ValueError(f"Unknown scenario: {scenario_id}")
    return CRISIS_SCENARIOS[scenario_id]


def get_all_scenario_ids() -> List[str]:
    """Return list of all available scenario IDs."""
    return list(CRISIS_SCENARIOS.keys())


def get_scenario_metadata(scenario_id: str) -> Dict[str, Any]:
    """Get the descriptive fields for a specific scenario (no returns)."""
    scenario = get_scenario(scenario_id)
    return {
        'id': scenario.id,
        'name': scenario.name,
        'short_name': scenario.short_name,
        'period': scenario.period,
        'peak_to_trough': scenario.peak_to_trough,
        'duration_months': scenario.duration_months,
        'recovery_months': scenario.recovery_months,
        'description': scenario.description,
        'characteristics': list(scenario.characteristics),
    }

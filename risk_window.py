"""
Risk Window Classification

The five years either side of retirement are when a crash does the most
damage: the portfolio is at its largest and withdrawals are about to start
(or just have). This module locates that window on the investor's timeline
and labels how bad a crash in a given retirement year would be.
"""

from dataclasses import dataclass

CRITICAL_WINDOW_YEARS = 5

# Messaging tiers by crash year into retirement (1-based).
SEVERE_MAX_YEAR = 3
SIGNIFICANT_MAX_YEAR = 7

IMPACT_MESSAGES = {
    'severe': "Early crashes are devastating. The portfolio has less time and fewer assets to recover.",
    'significant': "Mid-early crashes still cause significant damage during the critical window.",
    'manageable': "Later crashes are more manageable because the portfolio has already grown.",
}


@dataclass(frozen=True)
class RiskWindow:
    window_start: int      # Years from today
    window_end: int        # Years from today
    impact_tier: str
    current_age: int

    @property
    def start_age(self) -> int:
        return self.current_age + self.window_start

    @property
    def end_age(self) -> int:
        return self.current_age + self.window_end

    @property
    def message(self) -> str:
        return IMPACT_MESSAGES[self.impact_tier]

    def contains(self, years_from_now: int) -> bool:
        return self.window_start <= years_from_now <= self.window_end


def impact_tier(crash_year_index: int) -> str:
    if crash_year_index <= SEVERE_MAX_YEAR:
        return 'severe'
    if crash_year_index <= SIGNIFICANT_MAX_YEAR:
        return 'significant'
    return 'manageable'


def classify(current_age: int, retirement_age: int, crash_year_index: int) -> RiskWindow:
    """
    Locate the critical window and label a crash year.

    Args:
        current_age: Age today
        retirement_age: Planned retirement age (may already be behind you)
        crash_year_index: Year into retirement the crash lands in

    Returns:
        RiskWindow with the window in years from today and the impact tier
    """
    if current_age < 0 or retirement_age < 0:
        raise ValueError("ages must be non-negative")
    if crash_year_index < 0:
        raise ValueError(f"crash_year_index must be non-negative, got {crash_year_index}")

    years_to_retirement = retirement_age - current_age
    return RiskWindow(
        window_start=max(0, years_to_retirement - CRITICAL_WINDOW_YEARS),
        window_end=years_to_retirement + CRITICAL_WINDOW_YEARS,
        impact_tier=impact_tier(crash_year_index),
        current_age=current_age,
    )

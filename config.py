"""
Configuration for the sequence-risk simulator.

This file contains the default portfolio parameters and the fixed lookup
tables the simulator depends on.
Tweak DEFAULT_PARAMS to see how changes affect your outcomes.
"""

# =============================================================================
# YOUR SITUATION
# =============================================================================

DEFAULT_PARAMS = {
    # Portfolio
    'initial_balance': 1_000_000,     # Portfolio at retirement
    'annual_withdrawal': 40_000,      # 4% rule, fixed in nominal terms

    # Allocation (fractions, ideally summing to 1.0)
    'stock_allocation': 0.60,
    'bond_allocation': 0.40,

    # Used once an explicit return sequence runs out
    'expected_return': 0.07,          # 7% blended nominal

    # Time horizon
    'current_age': 65,
    'retirement_age': 65,
    'end_age': 95,                    # Model until this age
}

# =============================================================================
# BOND RETURN SCHEDULE
# =============================================================================
# Bond leg of the stock/bond blend while an explicit sequence is playing out.
# Years 1-3 of a crisis earn the low rate, later years the higher one.
# Changing these changes every historical result.

BOND_RETURN_SCHEDULE = (0.02, 0.02, 0.02)
BOND_RETURN_AFTER_SCHEDULE = 0.04

# =============================================================================
# BATCH & SOLVER SETTINGS
# =============================================================================

# Percentiles reported in every batch summary (5th is the headline figure)
REPORT_PERCENTILES = (5, 10, 25, 50, 75, 90, 95)

# Collections at least this large are fanned out across worker processes
PARALLEL_THRESHOLD = 2_000

# Hard cap for every binary search
SAFETY_MAX_ITERATIONS = 50

# Success rate a plan must reach to count as "bulletproof"
SUCCESS_THRESHOLD = 0.95

# Upper bound on sequences accepted by one API batch request
MAX_BATCH_SEQUENCES = 100_000

# Longest horizon the years-to-target solver will project
MAX_PROJECTION_YEARS = 1_000

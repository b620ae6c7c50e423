import pytest

from risk_window import IMPACT_MESSAGES, classify, impact_tier


def test_window_around_retirement():
    window = classify(40, 65, 1)

    assert (window.window_start, window.window_end) == (20, 30)
    assert (window.start_age, window.end_age) == (60, 70)
    assert window.impact_tier == 'severe'


def test_window_start_never_negative():
    window = classify(63, 65, 5)

    assert window.window_start == 0
    assert window.window_end == 7
    assert window.impact_tier == 'significant'


def test_already_retired():
    window = classify(70, 65, 10)

    assert window.window_start == 0
    assert window.window_end == 0
    assert window.impact_tier == 'manageable'


@pytest.mark.parametrize('year,tier', [
    (0, 'severe'), (1, 'severe'), (3, 'severe'),
    (4, 'significant'), (7, 'significant'),
    (8, 'manageable'), (25, 'manageable'),
])
def test_tier_thresholds(year, tier):
    assert impact_tier(year) == tier


def test_message_matches_tier():
    assert classify(60, 65, 2).message == IMPACT_MESSAGES['severe']


def test_contains():
    window = classify(50, 65, 1)

    assert window.contains(10)
    assert window.contains(20)
    assert not window.contains(9)
    assert not window.contains(21)


def test_invalid_inputs():
    with pytest.raises(ValueError):
        classify(50, 65, -1)
    with pytest.raises(ValueError):
        classify(-1, 65, 1)

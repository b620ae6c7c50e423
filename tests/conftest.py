import pytest

from api import app as flask_app
from config import DEFAULT_PARAMS
from withdrawal_simulator import PortfolioParameters


@pytest.fixture
def default_params():
    return PortfolioParameters.from_dict(DEFAULT_PARAMS)


@pytest.fixture
def flat_params():
    """All stocks, zero returns, ten years: easy to reason about by hand."""
    return PortfolioParameters(
        initial_balance=200_000,
        annual_withdrawal=10_000,
        stock_allocation=1.0,
        bond_allocation=0.0,
        expected_return=0.0,
        current_age=65,
        end_age=75,
    )


@pytest.fixture
def client():
    flask_app.config['TESTING'] = True
    with flask_app.test_client() as client:
        yield client

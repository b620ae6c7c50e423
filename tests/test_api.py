import pytest


def test_defaults(client):
    response = client.get('/api/defaults')

    assert response.status_code == 200
    assert response.get_json()['initial_balance'] == 1_000_000


def test_list_scenarios(client):
    data = client.get('/api/scenarios').get_json()

    assert [s['id'] for s in data['scenarios']] == [
        'great-depression', '2008-crisis', 'stagflation-70s', 'japan-lost-decade',
    ]
    assert len(data['bear_markets']) == 7


def test_scenario_detail(client):
    data = client.get('/api/scenarios/2008-crisis').get_json()
    assert data['yearly_returns'] == [5.5, -37.0, 26.5, 15.1, 2.1, 16.0, 32.4]

    assert client.get('/api/scenarios/tulip-mania').status_code == 404


def test_simulate_historical_scenario(client):
    response = client.post('/api/simulate', json={'scenario_id': '2008-crisis'})
    data = response.get_json()

    assert response.status_code == 200
    entries = data['ledger']['entries']
    assert entries[0]['portfolio_value'] == pytest.approx(999_360.00, abs=0.005)
    assert entries[1]['portfolio_value'] == pytest.approx(754_056.96, abs=0.005)
    assert len(data['baseline']['entries']) == 30
    assert data['analysis']['survives'] is True


def test_simulate_custom_scenario(client):
    response = client.post('/api/simulate', json={
        'initial_balance': 500_000,
        'annual_withdrawal': 60_000,
        'custom_scenario': {'crash_percent': -60, 'duration_months': 24, 'recovery_shape': 'L'},
    })
    data = response.get_json()

    assert response.status_code == 200
    assert data['scenario_id'] == 'custom-L'
    assert all(e['portfolio_value'] >= 0 for e in data['ledger']['entries'])


def test_simulate_raw_returns(client):
    response = client.post('/api/simulate', json={'returns': [-20, 10], 'end_age': 67})
    entries = response.get_json()['ledger']['entries']

    assert len(entries) == 2
    assert entries[0]['is_recovering'] is False


@pytest.mark.parametrize('body', [
    {'stock_allocation': 2},
    {'initial_balance': -5},
    {'end_age': 60},
    {'scenario_id': 'tulip-mania'},
    {'custom_scenario': {'duration_months': 0}},
])
def test_simulate_rejects_bad_input(client, body):
    response = client.post('/api/simulate', json=body)

    assert response.status_code == 400
    assert 'error' in response.get_json()


def test_custom_scenario(client):
    data = client.post('/api/custom-scenario', json={
        'crash_percent': -50, 'duration_months': 12, 'recovery_shape': 'V', 'inflation_rate': 3,
    }).get_json()

    assert data['returns'] == [-50.0, 40.0, 25.0, 15.0, 10.0]
    assert data['inflation_rate'] == 3


def test_stress_test(client):
    data = client.post('/api/stress-test', json={}).get_json()

    assert data['total'] == 4
    assert 0 <= data['survived'] <= 4
    assert {r['scenario_id'] for r in data['results']} == {
        'great-depression', '2008-crisis', 'stagflation-70s', 'japan-lost-decade',
    }


def test_batch_with_sequences(client):
    data = client.post('/api/batch', json={
        'initial_balance': 1_000,
        'annual_withdrawal': 1_000,
        'end_age': 70,
        'sequences': [[5, 5], {'id': 'boom', 'returns': [30, 30]}],
        'include_runs': True,
    }).get_json()

    assert data['total'] == 2
    assert data['success_rate'] == 0.0
    assert sum(b['count'] for b in data['buckets']) == 2
    assert data['runs'][1]['sequence_id'] == 'boom'


def test_batch_empty_is_no_data(client):
    data = client.post('/api/batch', json={'sequences': []}).get_json()

    assert data['has_data'] is False
    assert data['success_rate'] == 0.0
    assert data['percentiles']['p5'] is None


def test_batch_defaults_to_history(client):
    data = client.post('/api/batch', json={}).get_json()

    assert data['has_data'] is True
    assert data['total'] == 68


def test_risk_window(client):
    data = client.post('/api/risk-window', json={
        'current_age': 45, 'retirement_age': 65, 'crash_year': 6,
    }).get_json()

    assert data['window_start'] == 15
    assert data['window_end'] == 25
    assert data['start_age'] == 60
    assert data['impact_tier'] == 'significant'


def test_years_to_target(client):
    data = client.post('/api/solve/years-to-target', json={
        'balance': 100, 'target': 200, 'annual_return': 0.10,
    }).get_json()
    assert data == {'reachable': True, 'years': 8, 'iterations': data['iterations']}

    unreachable = client.post('/api/solve/years-to-target', json={
        'balance': 100, 'target': 200, 'annual_return': 0.0,
    }).get_json()
    assert unreachable['reachable'] is False
    assert unreachable['years'] is None


def test_years_to_target_missing_field(client):
    response = client.post('/api/solve/years-to-target', json={'balance': 100})
    assert response.status_code == 400


def test_solve_floor(client):
    data = client.post('/api/solve/floor', json={
        'initial_balance': 200_000,
        'annual_withdrawal': 10_000,
        'stock_allocation': 1.0,
        'expected_return': 0.0,
        'current_age': 65,
        'end_age': 75,
        'target_success_rate': 1.0,
        'sequences': [[0] * 10],
    }).get_json()

    assert 100_000 < data['bulletproof_floor'] <= 110_000
    assert 0 < data['max_sustainable_withdrawal'] < 20_000


def test_unknown_route_is_404(client):
    assert client.get('/api/nothing-here').status_code == 404


def test_years_to_target_rejects_huge_horizon(client):
    response = client.post('/api/solve/years-to-target', json={
        'balance': 100, 'target': 200, 'annual_return': 0.1, 'max_years': 20_000_000,
    })

    assert response.status_code == 400
    assert 'max_years' in response.get_json()['error']


@pytest.mark.parametrize('sequences', [[5], [[1, 2], 'abc'], [{'returns': 7}], 12])
def test_batch_rejects_malformed_sequences(client, sequences):
    response = client.post('/api/batch', json={'sequences': sequences})

    assert response.status_code == 400
    assert 'error' in response.get_json()

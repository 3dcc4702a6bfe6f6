"""
Tests for api.py - REST endpoints via FastAPI's TestClient.
"""
import pytest
from fastapi.testclient import TestClient

import api


@pytest.fixture
def client(game_files, monkeypatch):
    game_path, config_path = game_files
    monkeypatch.setenv('BIS_GAME_DATA', game_path)
    monkeypatch.setenv('BIS_CONFIG', config_path)
    monkeypatch.setattr(api, 'state', api.AppState())
    return TestClient(api.app)


@pytest.fixture
def strict_client(game_files, tmp_path, monkeypatch):
    game_path, _ = game_files
    config_path = tmp_path / 'strict.yaml'
    config_path.write_text(
        "jobConfigs:\n  BLM:\n    weights: {Intelligence: 1}\n"
        "    statRequirements: {Spell Speed: 10000}\n",
        encoding='utf-8',
    )
    monkeypatch.setenv('BIS_GAME_DATA', game_path)
    monkeypatch.setenv('BIS_CONFIG', str(config_path))
    monkeypatch.setattr(api, 'state', api.AppState())
    return TestClient(api.app)


@pytest.fixture
def empty_client(monkeypatch):
    monkeypatch.delenv('BIS_GAME_DATA', raising=False)
    monkeypatch.setattr(api, 'state', api.AppState())
    return TestClient(api.app)


class TestStatus:
    def test_ready(self, client):
        data = client.get('/api/status').json()
        assert data['status'] == 'ready'
        assert data['game_data_loaded']
        assert data['config_loaded']
        assert data['item_count'] == 4
        assert 'cbc' in data['solvers']

    def test_not_loaded(self, empty_client):
        data = empty_client.get('/api/status').json()
        assert data['status'] == 'not_loaded'
        assert 'BIS_GAME_DATA' in data['error']


class TestJobs:
    def test_lists_configured_jobs(self, client):
        jobs = client.get('/api/jobs').json()
        assert [job['abbreviation'] for job in jobs] == ['BLM']
        assert jobs[0]['name'] == 'Black Mage'
        assert jobs[0]['weights'] == {'Intelligence': 1.0, 'Critical Hit': 0.2}
        assert jobs[0]['requirements'] == {'Spell Speed': 60}

    def test_empty_when_not_loaded(self, empty_client):
        assert empty_client.get('/api/jobs').json() == []


class TestSolve:
    def test_optimal(self, client):
        response = client.post('/api/solve', json={'job': 'BLM'})
        assert response.status_code == 200
        data = response.json()
        assert data['success']
        assert data['status'] == 'optimal'
        assert data['solution']['total_stats']['Spell Speed'] >= 60
        ring = [g for g in data['solution']['gear'] if g['slot'] == 'Ring']
        assert sum(g['count'] for g in ring) == 2

    def test_exclusion_and_warnings(self, client):
        data = client.post('/api/solve', json={'job': 'BLM', 'exclude': [100, 999]}).json()
        assert data['success']
        assert data['warnings'] == ["Unknown id 999, ignoring."]
        assert 100 not in [g['item_id'] for g in data['solution']['gear']]

    def test_infeasible_is_not_a_failure(self, strict_client):
        data = strict_client.post('/api/solve', json={'job': 'BLM'}).json()
        assert data['success']
        assert data['status'] == 'infeasible'
        assert data['solution'] is None
        assert 'No feasible loadout' in data['error']

    def test_unknown_job(self, client):
        data = client.post('/api/solve', json={'job': 'NIN'}).json()
        assert not data['success']
        assert 'Unknown job' in data['error']

    def test_unknown_solver(self, client):
        data = client.post('/api/solve', json={'job': 'BLM', 'solver': 'cplex'}).json()
        assert not data['success']
        assert data['status'] == 'error'

    def test_not_loaded(self, empty_client):
        data = empty_client.post('/api/solve', json={'job': 'BLM'}).json()
        assert not data['success']
        assert data['status'] == 'not_loaded'

"""
Shared pytest fixtures for umpire scoring tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import tempfile

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep the app's default YAML store out of the repository while tests import it
os.environ.setdefault('MATCH_DATA_DIR', tempfile.mkdtemp(prefix='umpire-tests-'))

from umpire.store import InMemoryMatchStore, YamlMatchStore


def _player(name, gender, age=30):
    return {'id': name.lower(), 'name': name, 'gender': gender, 'age': age}


@pytest.fixture
def rosters():
    """Two club rosters. Hari (Hawks) and Omkar (Eagles) are not scheduled anywhere."""
    return [
        {
            'id': 'hawks',
            'name': 'Hawks',
            'logoUrl': 'https://example.org/hawks.png',
            'players': [
                _player('Arjun', 'Male'), _player('Bala', 'Male'), _player('Chetan', 'Male'),
                _player('Dev', 'Male'), _player('Hari', 'Male'),
                _player('Esha', 'Female'), _player('Farah', 'Female'), _player('Gita', 'Female'),
            ],
        },
        {
            'id': 'eagles',
            'name': 'Eagles',
            'logoUrl': {'url': 'https://example.org/eagles.png'},
            'players': [
                _player('Kiran', 'Male'), _player('Lokesh', 'Male'), _player('Manoj', 'Male'),
                _player('Nikhil', 'Male'), _player('Omkar', 'Male'),
                _player('Priya', 'Female'), _player('Riya', 'Female'), _player('Sana', 'Female'),
            ],
        },
    ]


def _fixture_match(match_id, number, match_type, label, team1, team2, players1, players2):
    match = {
        'id': match_id,
        'tournamentId': 't1',
        'fixtureGroupId': 'fx1',
        'matchNumber': number,
        'matchType': match_type,
        'matchTypeLabel': label,
        'team1': team1,
        'team2': team2,
        'team1Name': team1.capitalize(),
        'team2Name': team2.capitalize(),
    }
    for position, name in enumerate(players1, start=1):
        match[f'player{position}Team1'] = name
    for position, name in enumerate(players2, start=1):
        match[f'player{position}Team2'] = name
    return match


@pytest.fixture
def fixture_matches():
    """A Hawks vs Eagles fixture group.

    m3 has the Eagles as team1 so substitution checks must map sides to team ids.
    Arjun and Chetan already play two matches each; Dev plays another men's doubles.
    """
    return [
        _fixture_match('m1', 1, 'mensDoubles', "Men's Doubles", 'hawks', 'eagles',
                       ['Arjun', 'Bala'], ['Kiran', 'Lokesh']),
        _fixture_match('m2', 2, 'womensDoubles', "Women's Doubles", 'hawks', 'eagles',
                       ['Esha', 'Farah'], ['Priya', 'Riya']),
        _fixture_match('m3', 3, 'singles', "Men's Singles", 'eagles', 'hawks',
                       ['Manoj'], ['Chetan']),
        _fixture_match('m4', 4, 'mixedDoubles', 'Mixed Doubles', 'hawks', 'eagles',
                       ['Arjun', 'Esha'], ['Kiran', 'Priya']),
        _fixture_match('m5', 5, 'mensDoubles', "Men's Doubles (2)", 'hawks', 'eagles',
                       ['Chetan', 'Dev'], ['Manoj', 'Nikhil']),
    ]


@pytest.fixture
def store(fixture_matches, rosters):
    """In-memory store loaded with the fixture group and both rosters."""
    return InMemoryMatchStore(matches=fixture_matches, teams=rosters)


@pytest.fixture
def yaml_store(tmp_path, fixture_matches, rosters):
    """YAML-file store in a temporary directory with the same data."""
    yaml_store = YamlMatchStore(str(tmp_path))
    for match in fixture_matches:
        yaml_store.create(match)
    for team in rosters:
        yaml_store.save_team(team)
    return yaml_store


@pytest.fixture
def client(store, monkeypatch):
    """Flask test client backed by the in-memory store."""
    import app as app_module
    app_module.app.config['TESTING'] = True
    monkeypatch.setitem(app_module.app.config, 'MATCH_STORE', store)
    app_module._umpire_sessions.clear()
    with app_module.app.test_client() as client:
        yield client
    app_module._umpire_sessions.clear()

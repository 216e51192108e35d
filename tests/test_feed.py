"""
Tests for the basic-score feed.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from umpire.feed import generate_score_data, total_points
from umpire.scoring import UmpireScoring


class TestTotalPoints:
    """Tests for summing points over configured games."""

    def test_no_scores(self):
        assert total_points({}) == (0, 0)

    def test_sums_configured_games(self):
        match = {
            'gamesCount': 2,
            'scores': {'player1': {'game1': 11, 'game2': 5, 'game3': 9},
                       'player2': {'game1': 4, 'game2': 11, 'game3': 9}},
        }
        assert total_points(match) == (16, 15)

    def test_defaults_to_three_games(self):
        match = {'scores': {'player1': {'game1': 1, 'game2': 2, 'game3': 3, 'game4': 4},
                            'player2': {}}}
        assert total_points(match) == (6, 0)

    def test_non_numeric_values_ignored(self):
        match = {'gamesCount': 2, 'scores': {'player1': {'game1': '7', 'game2': 3}, 'player2': {'game1': None}}}
        assert total_points(match) == (3, 0)


class TestGenerateScoreData:
    """Tests for the feed document."""

    def test_unscored_doubles_match(self, fixture_matches):
        data = generate_score_data(fixture_matches[0])
        assert data['matchId'] == 'm1'
        assert data['matchStatus'] == 'active'
        assert data['isDoubles'] is True
        assert data['lastUpdated']
        first, second = data['tableData']
        assert first['playerName'] == 'Arjun/ Bala'
        assert second['playerName'] == 'Kiran/ Lokesh'
        assert first['teamName'] == 'Hawks'
        assert (first['points'], second['points']) == (0, 0)
        assert (first['serve'], second['serve']) == ('', '')

    def test_singles_names(self, fixture_matches):
        data = generate_score_data(fixture_matches[2])
        assert data['isDoubles'] is False
        assert [row['playerName'] for row in data['tableData']] == ['Manoj', 'Chetan']

    def test_singles_falls_back_to_team_name(self):
        data = generate_score_data({'id': 'x', 'team1Name': 'Hawks', 'team2Name': 'Eagles'})
        assert [row['playerName'] for row in data['tableData']] == ['Hawks', 'Eagles']

    def test_doubles_serve_marker(self, fixture_matches):
        match = dict(fixture_matches[0], servingPlayer='player2', teamServeCount=1, status='live')
        data = generate_score_data(match)
        assert data['matchStatus'] == 'live'
        assert [row['serve'] for row in data['tableData']] == ['', '2']

    def test_logos(self, fixture_matches, rosters):
        teams = {'team1': rosters[0], 'team2': rosters[1]}
        data = generate_score_data(fixture_matches[0], teams)
        assert data['tableData'][0]['teamLogoUrl'] == 'https://example.org/hawks.png'
        assert data['tableData'][1]['teamLogoUrl'] == 'https://example.org/eagles.png'

    def test_feed_follows_scoring(self, store):
        scoring = UmpireScoring(store, 'm3')
        scoring.set_games_count(1)
        scoring.complete_setup()
        scoring.update_score('player1', 0, 3)
        scoring.update_score('player2', 0, 1)
        scoring.change_serve()

        data = generate_score_data(store.get('m3'))

        assert [row['points'] for row in data['tableData']] == [3, 1]
        assert [row['serve'] for row in data['tableData']] == ['', '1']

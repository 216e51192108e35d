"""
Score feed for overlays and scoreboards.

Readers of a match document recompute totals and the serve marker the same
way, so the formulas live here and every display endpoint uses them.
"""
from datetime import datetime

from umpire.models import is_doubles, game_key
from umpire.serve import serve_from_document, serve_indicator

DEFAULT_FEED_GAMES = 3


def total_points(match):
    """Sum of each side's points over the configured games. Returns (player1_total, player2_total)."""
    scores = match.get('scores')
    if not scores:
        return 0, 0
    games_count = match.get('gamesCount') or DEFAULT_FEED_GAMES
    totals = [0, 0]
    for i in range(games_count):
        key = game_key(i)
        for idx, side in enumerate(('player1', 'player2')):
            value = (scores.get(side) or {}).get(key, 0)
            if isinstance(value, int):
                totals[idx] += value
    return totals[0], totals[1]


def _logo_url(team):
    if not team:
        return ''
    logo = team.get('logoUrl') or team.get('logo') or ''
    if isinstance(logo, dict):
        return logo.get('url', '')
    return logo


def generate_score_data(match, teams=None):
    """Build the basic-score document for a match.

    Args:
        match: Match document
        teams: Optional {'team1': team_doc, 'team2': team_doc} for names/logos

    Returns:
        Dict with keys: matchId, lastUpdated, matchStatus, isDoubles, tableData
    """
    teams = teams or {}
    team1_total, team2_total = total_points(match)
    doubles = is_doubles(match)
    serve = serve_from_document(match) if match.get('servingPlayer') else None

    def serve_for(side):
        return serve_indicator(serve, side) if serve else ''

    if doubles:
        team1_players = f"{match.get('player1Team1') or 'Player 1'}/ {match.get('player2Team1') or 'Player 2'}"
        team2_players = f"{match.get('player1Team2') or 'Player 3'}/ {match.get('player2Team2') or 'Player 4'}"
    else:
        team1_players = match.get('player1Team1') or match.get('team1Name') or 'Player 1'
        team2_players = match.get('player1Team2') or match.get('team2Name') or 'Player 2'

    table = [
        {
            'playerName': team1_players,
            'teamName': match.get('team1Name') or 'Team 1',
            'teamLogoUrl': _logo_url(teams.get('team1')),
            'points': team1_total,
            'serve': serve_for('player1'),
        },
        {
            'playerName': team2_players,
            'teamName': match.get('team2Name') or 'Team 2',
            'teamLogoUrl': _logo_url(teams.get('team2')),
            'points': team2_total,
            'serve': serve_for('player2'),
        },
    ]

    return {
        'matchId': match.get('id'),
        'lastUpdated': datetime.now().isoformat(),
        'matchStatus': match.get('status') or 'active',
        'isDoubles': doubles,
        'tableData': table,
    }

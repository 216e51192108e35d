"""
Flask web application for League Umpire Scoring.
"""
import os
import time
import logging
from flask import Flask, request, jsonify, Response, stream_with_context, abort
from umpire.errors import MatchNotFoundError, StoreError, ValidationError, InvalidTransitionError
from umpire.feed import generate_score_data
from umpire.models import SIDES, TEAMS
from umpire.scoring import UmpireScoring
from umpire.store import YamlMatchStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('MATCH_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LIVE_POLL_SECONDS = float(os.environ.get('LIVE_POLL_SECONDS', '3'))
HEARTBEAT_SECONDS = 15

# Fields the store owns; never accepted from clients
PROTECTED_FIELDS = {'revision', 'createdAt'}

app.config['MATCH_STORE'] = YamlMatchStore(DATA_DIR)

# Umpire sessions hold unsaved setup choices between requests.
# Structure: {match_id: UmpireScoring}
_umpire_sessions = {}


def get_store():
    return app.config['MATCH_STORE']


def get_umpire_session(match_id: str) -> UmpireScoring:
    """Return the umpire session for a match, loading it on first use."""
    scoring = _umpire_sessions.get(match_id)
    if scoring is None or scoring.store is not get_store():
        scoring = UmpireScoring(get_store(), match_id)
        _umpire_sessions[match_id] = scoring
    return scoring


def _umpire_response(scoring, **extra):
    """JSON envelope for umpire actions.

    A failed write still returns the optimistic state so the umpire can keep
    going, with the banner message under 'error'.
    """
    payload = {'success': scoring.last_write_ok, 'match': scoring.to_dict()}
    payload.update(extra)
    if not scoring.last_write_ok:
        payload['error'] = scoring.error
        return jsonify(payload), 503
    return jsonify(payload)


def _get_int(data: dict, key: str, default=None):
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{key} must be an integer')
    return value


def _get_str(data: dict, key: str):
    value = data.get(key) or ''
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value.strip()


@app.errorhandler(MatchNotFoundError)
def handle_match_not_found(e):
    return jsonify({'success': False, 'error': 'Match not found'}), 404


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'success': False, 'error': str(e)}), 400


@app.errorhandler(InvalidTransitionError)
def handle_invalid_transition(e):
    return jsonify({'success': False, 'error': str(e)}), 409


@app.errorhandler(StoreError)
def handle_store_error(e):
    app.logger.error(f'Store error: {e}')
    return jsonify({'success': False, 'error': 'Failed to load match data'}), 503


# ---------------------------------------------------------------------------
# Match and team documents
# ---------------------------------------------------------------------------

@app.route('/api/matches', methods=['POST'])
def api_create_match():
    """Create a fixture match document (normally done by tournament scheduling).

    Requires: team1Name, team2Name in JSON body. Other match fields are stored as given.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    if not data.get('team1Name') or not data.get('team2Name'):
        return jsonify({'success': False, 'error': 'Missing team names'}), 400

    match = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
    match = get_store().create(match)
    app.logger.info(f"Created match {match['id']}: {match['team1Name']} vs {match['team2Name']}")
    return jsonify({'success': True, 'match': match}), 201


@app.route('/api/matches/<match_id>')
def api_get_match(match_id):
    """Return the stored match document."""
    return jsonify({'success': True, 'match': get_store().get(match_id)})


@app.route('/api/teams', methods=['POST'])
def api_save_team():
    """Register or replace a team roster.

    Requires: name and players ([{name, gender, age}]) in JSON body.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    name = (data.get('name') or '').strip()
    players = data.get('players', [])
    if not name:
        return jsonify({'success': False, 'error': 'Team name is required'}), 400
    if not isinstance(players, list) or not all(isinstance(p, dict) and p.get('name') for p in players):
        return jsonify({'success': False, 'error': 'Players must be a list of objects with a name'}), 400

    team = get_store().save_team({**data, 'name': name})
    return jsonify({'success': True, 'team': team}), 201


# ---------------------------------------------------------------------------
# Umpire scoring
# ---------------------------------------------------------------------------

@app.route('/api/umpire/<match_id>')
def api_umpire_state(match_id):
    """Current umpire view of a match (setup step, scores, serve, error banner)."""
    scoring = get_umpire_session(match_id)
    return jsonify({'success': True, 'match': scoring.to_dict()})


@app.route('/api/umpire/<match_id>/games-count', methods=['POST'])
def api_set_games_count(match_id):
    """Set number of games (clamped to 1-5). Requires: games_count."""
    data = request.get_json(silent=True) or {}
    scoring = get_umpire_session(match_id)
    scoring.set_games_count(_get_int(data, 'games_count'))
    return jsonify({'success': True, 'match': scoring.to_dict()})


@app.route('/api/umpire/<match_id>/points', methods=['POST'])
def api_set_points(match_id):
    """Set target points of one game (clamped to 1-21). Requires: index, points."""
    data = request.get_json(silent=True) or {}
    scoring = get_umpire_session(match_id)
    scoring.set_points_per_game(_get_int(data, 'index'), _get_int(data, 'points'))
    return jsonify({'success': True, 'match': scoring.to_dict()})


@app.route('/api/umpire/<match_id>/setup/next', methods=['POST'])
def api_confirm_games(match_id):
    """Move from games-count setup to points setup."""
    scoring = get_umpire_session(match_id)
    scoring.confirm_games_count()
    return jsonify({'success': True, 'match': scoring.to_dict()})


@app.route('/api/umpire/<match_id>/setup/complete', methods=['POST'])
def api_complete_setup(match_id):
    """Finish setup, mark the match live and start scoring."""
    scoring = get_umpire_session(match_id)
    scoring.complete_setup()
    return _umpire_response(scoring)


@app.route('/api/umpire/<match_id>/score', methods=['POST'])
def api_update_score(match_id):
    """Adjust a score. Requires: side ('player1'/'player2'), game (0-based), delta (default 1)."""
    data = request.get_json(silent=True) or {}
    side = data.get('side')
    if side not in SIDES:
        return jsonify({'success': False, 'error': 'side must be player1 or player2'}), 400
    scoring = get_umpire_session(match_id)
    new_score = scoring.update_score(side, _get_int(data, 'game'), _get_int(data, 'delta', 1))
    return _umpire_response(scoring, score=new_score)


@app.route('/api/umpire/<match_id>/serve', methods=['POST'])
def api_change_serve(match_id):
    """Advance serve rotation."""
    scoring = get_umpire_session(match_id)
    scoring.change_serve()
    return _umpire_response(scoring)


@app.route('/api/umpire/<match_id>/substitutes')
def api_substitutes(match_id):
    """List a team's roster with availability. Query: team, player_out."""
    team = request.args.get('team', '')
    if team not in TEAMS:
        return jsonify({'success': False, 'error': 'team must be team1 or team2'}), 400
    scoring = get_umpire_session(match_id)
    players = [
        {**entry['player'].to_dict(), 'available': entry['available'], 'reason': entry['reason']}
        for entry in scoring.players_with_availability(team, request.args.get('player_out'))
    ]
    return jsonify({
        'success': True,
        'canSubstitute': scoring.can_team_make_substitution(team),
        'players': players,
    })


@app.route('/api/umpire/<match_id>/substitution', methods=['POST'])
def api_substitution(match_id):
    """Substitute a player. Requires: team, player_out, player_in."""
    data = request.get_json(silent=True) or {}
    scoring = get_umpire_session(match_id)
    record = scoring.request_substitution(
        _get_str(data, 'team'),
        _get_str(data, 'player_out'),
        _get_str(data, 'player_in'),
    )
    return _umpire_response(scoring, substitution=record.to_dict() if record else None)


@app.route('/api/umpire/<match_id>/end', methods=['POST'])
def api_end_match(match_id):
    """End the match and store the result."""
    scoring = get_umpire_session(match_id)
    result = scoring.end_match()
    if scoring.last_write_ok:
        # Result is stored; a later request reloads the match in the ended step
        _umpire_sessions.pop(match_id, None)
    return _umpire_response(scoring, winner=result.winner, finalScore=result.final_score)


@app.route('/api/umpire/<match_id>/reload', methods=['POST'])
def api_reload(match_id):
    """Discard local state and reload the match from the store."""
    scoring = get_umpire_session(match_id)
    scoring.reload()
    return jsonify({'success': True, 'match': scoring.to_dict()})


@app.route('/api/umpire/<match_id>/dismiss-error', methods=['POST'])
def api_dismiss_error(match_id):
    scoring = get_umpire_session(match_id)
    scoring.dismiss_error()
    return jsonify({'success': True, 'match': scoring.to_dict()})


# ---------------------------------------------------------------------------
# Displays
# ---------------------------------------------------------------------------

@app.route('/basic-score/<match_id>.json')
def basic_score(match_id):
    """Score feed consumed by overlays and scoreboards."""
    store = get_store()
    match = store.get(match_id)
    teams = {}
    for team in TEAMS:
        if match.get(team):
            team_doc = store.get_team(match[team])
            if team_doc:
                teams[team] = team_doc
    response = jsonify(generate_score_data(match, teams))
    response.headers['Access-Control-Allow-Origin'] = '*'
    return response


def _match_revision(match_id: str):
    try:
        return get_store().get(match_id).get('revision', 0)
    except MatchNotFoundError:
        return None


@app.route('/api/live-stream/<match_id>')
def api_live_stream(match_id):
    """Server-Sent Events stream that notifies displays when a match changes."""
    initial_revision = _match_revision(match_id)
    if initial_revision is None:
        abort(404)

    def generate():
        """Yield SSE events, checking the match revision every LIVE_POLL_SECONDS."""
        yield "event: connected\ndata: ok\n\n"
        last_revision = initial_revision
        since_heartbeat = 0.0

        while True:
            time.sleep(LIVE_POLL_SECONDS)
            since_heartbeat += LIVE_POLL_SECONDS

            revision = _match_revision(match_id)
            if revision != last_revision:
                last_revision = revision
                yield f"event: update\ndata: {revision}\n\n"

            if since_heartbeat >= HEARTBEAT_SECONDS:
                since_heartbeat = 0.0
                yield ": heartbeat\n\n"

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))
    app.run(debug=True, port=5000)

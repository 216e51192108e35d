"""
Live umpire scoring for a single match.

The umpire walks a match through four steps:

    games    - choose how many games (1-5)
    points   - choose the target score of each game (1-21)
    scoring  - record points, rotate serve, substitute players
    ended    - result computed and stored, no further changes

Every scoring action is written straight to the match store. A failed write
leaves the in-memory state at its new value and sets `error` to a message the
umpire can see and dismiss; nothing is retried or rolled back.
"""
import copy
import logging
from datetime import datetime

from umpire import substitution
from umpire.errors import InvalidTransitionError, StoreError, RevisionConflictError, \
    SubstitutionNotAllowedError, ValidationError
from umpire.models import SIDES, TEAMS, TEAM_FOR_SIDE, STATUS_LIVE, STATUS_COMPLETED, \
    MatchResult, Player, Substitution, game_key, is_doubles, team_slots
from umpire.serve import serve_from_document

logger = logging.getLogger(__name__)

SETUP_GAMES = 'games'
SETUP_POINTS = 'points'
SCORING = 'scoring'
ENDED = 'ended'
SETUP_STEPS = (SETUP_GAMES, SETUP_POINTS)

MIN_GAMES = 1
MAX_GAMES = 5
MIN_POINTS = 1
MAX_POINTS = 21
DEFAULT_GAMES_COUNT = 3
DEFAULT_POINTS = 11


def _now():
    return datetime.now().isoformat()


def clamp(value, low, high):
    return max(low, min(high, value))


def resize_points(points_per_game, games_count):
    """Pad with the default target or truncate so there is one target per game."""
    points = list(points_per_game)[:games_count]
    while len(points) < games_count:
        points.append(DEFAULT_POINTS)
    return points


def build_score_grid(games_count, existing=None):
    """Score grid for every side and game, keeping any scores already entered."""
    existing = existing or {}
    grid = {}
    for side in SIDES:
        side_scores = existing.get(side) or {}
        grid[side] = {game_key(i): side_scores.get(game_key(i)) or 0 for i in range(games_count)}
    return grid


def decide_winner(scores, games_count):
    """Majority-of-games winner over every configured game.

    A drawn game (including an unplayed 0-0) counts for neither side. Equal
    games won gives a tie.
    """
    games_won = {side: 0 for side in SIDES}
    for i in range(games_count):
        key = game_key(i)
        p1 = (scores.get('player1') or {}).get(key) or 0
        p2 = (scores.get('player2') or {}).get(key) or 0
        if p1 > p2:
            games_won['player1'] += 1
        elif p2 > p1:
            games_won['player2'] += 1

    if games_won['player1'] > games_won['player2']:
        winner = 'player1'
    elif games_won['player2'] > games_won['player1']:
        winner = 'player2'
    else:
        winner = MatchResult.TIE
    return MatchResult(winner, games_won)


class UmpireScoring:
    def __init__(self, store, match_id):
        self.store = store
        self.match_id = match_id
        self.reload()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def reload(self):
        """(Re)read the match document and derive local state from it.

        Raises MatchNotFoundError if the match does not exist.
        """
        match = self.store.get(self.match_id)
        self.match = match
        self.error = None
        self.last_write_ok = True
        self._unsaved = {}
        self.revision = match.get('revision', 0)
        self.games_count = clamp(int(match.get('gamesCount') or DEFAULT_GAMES_COUNT), MIN_GAMES, MAX_GAMES)
        self.points_per_game = resize_points(match.get('pointsPerGame') or [], self.games_count)
        self.scores = build_score_grid(self.games_count, match.get('scores'))
        self.serve = serve_from_document(match)
        self.result = None

        status = match.get('status')
        if status == STATUS_COMPLETED:
            self.step = ENDED
            self.result = decide_winner(self.scores, self.games_count)
        elif match.get('scores') or status == STATUS_LIVE:
            self.step = SCORING
        else:
            self.step = SETUP_GAMES
        logger.debug(f'Loaded match {self.match_id} at step {self.step} (revision {self.revision})')

    @property
    def doubles(self):
        return is_doubles(self.match)

    def _require_step(self, action, *steps):
        if self.step not in steps:
            raise InvalidTransitionError(f'Cannot {action} while match is in {self.step} step')

    def _persist(self, fields, failure_message):
        """Write fields to the store. On failure keep local state and surface an error.

        Fields from failed writes are kept in `_unsaved` and sent again with the
        next write until one succeeds.
        """
        fields = {**self._unsaved, **fields}
        try:
            stored = self.store.update(self.match_id, fields, expected_revision=self.revision)
        except RevisionConflictError as e:
            logger.error(f'Revision conflict on match {self.match_id}: {e}')
            self._unsaved = copy.deepcopy(fields)
            self.match.update(copy.deepcopy(fields))
            self.last_write_ok = False
            self.error = 'Match was changed from another device. Reload to continue scoring.'
            return False
        except StoreError as e:
            logger.error(f'Failed to write match {self.match_id}: {e}')
            self._unsaved = copy.deepcopy(fields)
            self.match.update(copy.deepcopy(fields))
            self.error = failure_message
            self.last_write_ok = False
            return False
        self.match = stored
        self.revision = stored['revision']
        self._unsaved = {}
        self.last_write_ok = True
        return True

    def dismiss_error(self):
        self.error = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_games_count(self, games_count):
        self._require_step('change games count', *SETUP_STEPS)
        self.games_count = clamp(int(games_count), MIN_GAMES, MAX_GAMES)
        self.points_per_game = resize_points(self.points_per_game, self.games_count)
        return self.games_count

    def set_points_per_game(self, index, points):
        self._require_step('change points per game', *SETUP_STEPS)
        if not 0 <= index < self.games_count:
            raise ValidationError(f'Game index {index} out of range for {self.games_count} games')
        self.points_per_game[index] = clamp(int(points), MIN_POINTS, MAX_POINTS)
        return self.points_per_game[index]

    def confirm_games_count(self):
        self._require_step('confirm games count', SETUP_GAMES)
        self.step = SETUP_POINTS

    def complete_setup(self):
        """Start scoring: build the score grid and mark the match live.

        Safe to call again once scoring has begun; entered scores and the
        original start time are kept.
        """
        self._require_step('complete setup', SETUP_GAMES, SETUP_POINTS, SCORING)
        self.scores = build_score_grid(self.games_count, self.scores)
        self.step = SCORING
        fields = {
            'status': STATUS_LIVE,
            'gamesCount': self.games_count,
            'pointsPerGame': list(self.points_per_game),
            'scores': copy.deepcopy(self.scores),
            'startedAt': self.match.get('startedAt') or _now(),
        }
        fields.update(self.serve.to_fields())
        self._persist(fields, 'Failed to start match')
        return self.scores

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def update_score(self, side, game_index, delta):
        """Add delta (may be negative) to a side's score in one game; never below zero."""
        self._require_step('update score', SCORING)
        if side not in SIDES:
            raise ValidationError(f'Invalid side: {side}')
        if not 0 <= game_index < self.games_count:
            raise ValidationError(f'Game index {game_index} out of range for {self.games_count} games')

        key = game_key(game_index)
        self.scores[side][key] = max(0, self.scores[side].get(key, 0) + int(delta))

        fields = {
            'scores': copy.deepcopy(self.scores),
            'gamesCount': self.games_count,
            'pointsPerGame': list(self.points_per_game),
            'status': STATUS_LIVE,
            'lastUpdated': _now(),
        }
        fields.update(self.serve.to_fields())
        self._persist(fields, 'Failed to save scores')
        return self.scores[side][key]

    def change_serve(self):
        self._require_step('change serve', SCORING)
        self.serve = self.serve.next()
        fields = self.serve.to_fields()
        fields['lastUpdated'] = _now()
        self._persist(fields, 'Failed to update serve')
        return self.serve

    def current_game(self):
        """1-based number of the first game neither side has reached its target in."""
        for i in range(self.games_count):
            key = game_key(i)
            target = self.points_per_game[i]
            if all(self.scores[side].get(key, 0) < target for side in SIDES):
                return i + 1
        return self.games_count

    def calculate_winner(self):
        return decide_winner(self.scores, self.games_count)

    def side_name(self, side):
        team = TEAM_FOR_SIDE[side]
        names = [self.match.get(key) for key in team_slots(team) if self.match.get(key)]
        if names:
            return ' / '.join(names)
        return self.match.get(f'{team}Name') or f'Player {side[-1]}'

    def end_match(self):
        self._require_step('end match', SCORING)
        result = self.calculate_winner()
        now = _now()
        if result.is_tie:
            winner_name = None
            winner_team = None
        else:
            winner_name = self.side_name(result.winner)
            winner_team = self.match.get(f'{TEAM_FOR_SIDE[result.winner]}Name')

        fields = {
            'status': STATUS_COMPLETED,
            'scores': copy.deepcopy(self.scores),
            'gamesCount': self.games_count,
            'pointsPerGame': list(self.points_per_game),
            'completedAt': now,
            'endedAt': now,
            'winner': result.winner,
            'winnerName': winner_name,
            'winnerTeam': winner_team,
            'finalScore': result.final_score,
            'gamesWon': dict(result.games_won),
        }
        fields.update(self.serve.to_fields())
        self.step = ENDED
        self.result = result
        self._persist(fields, 'Failed to end match')
        logger.info(f'Match {self.match_id} ended: {result.winner} {result.final_score}')
        return result

    # ------------------------------------------------------------------
    # Substitutions
    # ------------------------------------------------------------------

    def _check_team(self, team):
        if team not in TEAMS:
            raise ValidationError(f'Invalid team: {team}')

    def _group(self):
        return self.store.fixture_group(self.match)

    def _roster(self, team):
        team_id = self.match.get(team)
        doc = self.store.get_team(team_id) if team_id else None
        if not doc:
            return []
        return [Player.from_dict(p) for p in doc.get('players') or []]

    def can_team_make_substitution(self, team):
        self._check_team(team)
        team_id = self.match.get(team)
        if team_id is None:
            return not any(r.get('team') == team for r in self.match.get('substitutions') or [])
        return not substitution.team_has_substituted(self._group(), team_id)

    def players_with_availability(self, team, outgoing_player=None):
        self._check_team(team)
        return substitution.player_availability(self._roster(team), self.match, team, self._group(),
                                                outgoing_player)

    def available_substitutes(self, team, outgoing_player=None):
        self._check_team(team)
        return substitution.eligible_substitutes(self._roster(team), self.match, team, self._group(),
                                                 outgoing_player)

    def request_substitution(self, team, outgoing_player, incoming_player):
        """Swap a player on court for an eligible substitute and record it.

        Raises:
            ValidationError: missing fields, player not on court, or substitute not eligible
            SubstitutionNotAllowedError: the team already substituted in this fixture group
        """
        self._require_step('substitute players', SETUP_GAMES, SETUP_POINTS, SCORING)
        if not team or not outgoing_player or not incoming_player:
            raise ValidationError('Select a team, the outgoing player and the incoming player')
        self._check_team(team)
        slot = next((key for key in team_slots(team) if self.match.get(key) == outgoing_player), None)
        if slot is None:
            raise ValidationError(f'{outgoing_player} is not on court for {team}')

        try:
            with self.store.lock():
                if not self.can_team_make_substitution(team):
                    raise SubstitutionNotAllowedError(
                        f"{self.match.get(f'{team}Name') or team} has already made a substitution in this fixture"
                    )
                eligible = [p.name for p in self.available_substitutes(team, outgoing_player)]
                if not eligible:
                    raise ValidationError('No eligible players available for substitution')
                if incoming_player not in eligible:
                    raise ValidationError(f'{incoming_player} is not eligible to substitute')

                record = Substitution(
                    timestamp=_now(),
                    team=team,
                    player_out=outgoing_player,
                    player_in=incoming_player,
                    game=self.current_game(),
                )
                ledger = list(self.match.get('substitutions') or []) + [record.to_dict()]
                self.match[slot] = incoming_player
                self.match['substitutions'] = ledger
                self._persist({slot: incoming_player, 'substitutions': ledger}, 'Failed to save substitution')
        except StoreError as e:
            logger.error(f'Substitution check failed for match {self.match_id}: {e}')
            self.error = 'Failed to save substitution'
            self.last_write_ok = False
            return None
        logger.info(f'Match {self.match_id}: {team} substituted {outgoing_player} -> {incoming_player}')
        return record

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def to_dict(self):
        data = {
            'matchId': self.match_id,
            'step': self.step,
            'status': self.match.get('status'),
            'gamesCount': self.games_count,
            'pointsPerGame': list(self.points_per_game),
            'scores': copy.deepcopy(self.scores),
            'isDoubles': self.doubles,
            'currentGame': self.current_game(),
            'substitutions': list(self.match.get('substitutions') or []),
            'revision': self.revision,
            'error': self.error,
        }
        data.update(self.serve.to_fields())
        for team in TEAMS:
            for key in team_slots(team):
                data[key] = self.match.get(key)
        if self.result is not None:
            data['result'] = {
                'winner': self.result.winner,
                'gamesWon': dict(self.result.games_won),
                'finalScore': self.result.final_score,
            }
        return data

SIDES = ('player1', 'player2')
TEAMS = ('team1', 'team2')
TEAM_FOR_SIDE = {'player1': 'team1', 'player2': 'team2'}

STATUS_LIVE = 'live'
STATUS_COMPLETED = 'completed'

GENDER_MALE = 'Male'
GENDER_FEMALE = 'Female'


def slot_key(team, position):
    """Return the match document field for a player slot, e.g. ('team1', 2) -> 'player2Team1'."""
    return f"player{position}Team{team[-1]}"


def team_slots(team):
    return [slot_key(team, 1), slot_key(team, 2)]


def players_on_court(match, team=None):
    """Names of the players currently assigned in a match (optionally one team only)."""
    teams = [team] if team else list(TEAMS)
    names = []
    for t in teams:
        for key in team_slots(t):
            if match.get(key):
                names.append(match[key])
    return names


def is_doubles(match):
    return bool(match.get('player2Team1')) and bool(match.get('player2Team2'))


def game_key(game_index):
    """Score grid key for a 0-based game index."""
    return f"game{game_index + 1}"


def other_side(side):
    return 'player2' if side == 'player1' else 'player1'


class Player:
    def __init__(self, name, gender=None, age=None, id=None):
        self.id = id
        self.name = name
        self.gender = gender
        self.age = age

    @classmethod
    def from_dict(cls, data):
        return cls(name=data['name'], gender=data.get('gender'), age=data.get('age'), id=data.get('id'))

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'gender': self.gender, 'age': self.age}

    def __eq__(self, other):
        return isinstance(other, Player) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Player(name={self.name}, gender={self.gender}, age={self.age})"


class Substitution:
    def __init__(self, timestamp, team, player_out, player_in, game):
        self.timestamp = timestamp
        self.team = team
        self.player_out = player_out
        self.player_in = player_in
        self.game = game

    @classmethod
    def from_dict(cls, data):
        return cls(
            timestamp=data.get('timestamp'),
            team=data['team'],
            player_out=data['playerOut'],
            player_in=data['playerIn'],
            game=data.get('game'),
        )

    def to_dict(self):
        return {
            'timestamp': self.timestamp,
            'team': self.team,
            'playerOut': self.player_out,
            'playerIn': self.player_in,
            'game': self.game,
        }

    def __repr__(self):
        return (f"Substitution(team={self.team}, out={self.player_out}, "
                f"in={self.player_in}, game={self.game})")


class MatchResult:
    """Outcome of a match: winning side ('player1', 'player2' or 'tie') and games won per side."""

    TIE = 'tie'

    def __init__(self, winner, games_won):
        self.winner = winner
        self.games_won = games_won

    @property
    def final_score(self):
        return f"{self.games_won['player1']}-{self.games_won['player2']}"

    @property
    def is_tie(self):
        return self.winner == self.TIE

    def __repr__(self):
        return f"MatchResult(winner={self.winner}, final_score={self.final_score})"

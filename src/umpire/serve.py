"""
Serve rotation for singles and doubles matches.

Serve state is one of two shapes:

    SinglesServe(side)                 - serve alternates on every change
    DoublesServe(side, serve_count)    - serve_count 0 = first serve of the
                                         side's turn, 1 = second serve

Transitions are pure; the scoring state machine persists the result using
to_fields().
"""
from umpire.models import SIDES, other_side, is_doubles


class SinglesServe:
    doubles = False

    def __init__(self, side='player1'):
        if side not in SIDES:
            raise ValueError(f"Invalid serving side: {side}")
        self.side = side

    def next(self):
        return SinglesServe(other_side(self.side))

    def to_fields(self):
        # Singles has no serve sequence; it resets on every switch
        return {'servingPlayer': self.side, 'serveSequence': 0, 'teamServeCount': 0}

    def indicator(self, side):
        return '1' if side == self.side else ''

    def __eq__(self, other):
        return isinstance(other, SinglesServe) and other.side == self.side

    def __repr__(self):
        return f"SinglesServe(side={self.side})"


class DoublesServe:
    doubles = True

    def __init__(self, side='player1', serve_count=0):
        if side not in SIDES:
            raise ValueError(f"Invalid serving side: {side}")
        if serve_count not in (0, 1):
            raise ValueError(f"teamServeCount must be 0 or 1, got {serve_count}")
        self.side = side
        self.serve_count = serve_count

    def next(self):
        if self.serve_count == 0:
            return DoublesServe(self.side, 1)
        return DoublesServe(other_side(self.side), 0)

    def to_fields(self):
        return {
            'servingPlayer': self.side,
            'serveSequence': self.serve_count + 1,
            'teamServeCount': self.serve_count,
        }

    def indicator(self, side):
        if side != self.side:
            return ''
        return '1' if self.serve_count == 0 else '2'

    def __eq__(self, other):
        return (isinstance(other, DoublesServe) and other.side == self.side
                and other.serve_count == self.serve_count)

    def __repr__(self):
        return f"DoublesServe(side={self.side}, serve_count={self.serve_count})"


def initial_serve(doubles, side='player1'):
    if doubles:
        return DoublesServe(side, 0)
    return SinglesServe(side)


def next_serve(state):
    return state.next()


def serve_from_document(match):
    """Rebuild serve state from a stored match; missing or bad fields fall back to player1 first serve."""
    side = match.get('servingPlayer')
    if side not in SIDES:
        side = 'player1'
    if not is_doubles(match):
        return SinglesServe(side)
    count = match.get('teamServeCount')
    if count not in (0, 1):
        count = 0
    return DoublesServe(side, count)


def serve_indicator(state, side):
    """Feed/overlay serve marker for one side: '1'/'2' for the serving doubles side, '1' in singles, else ''."""
    return state.indicator(side)

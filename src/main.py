# Command line scoreboard for a stored match

import argparse
import os
import sys

from umpire.errors import MatchNotFoundError
from umpire.feed import generate_score_data
from umpire.models import game_key
from umpire.scoring import decide_winner, DEFAULT_GAMES_COUNT
from umpire.store import YamlMatchStore


def format_scoreboard(match):
    """Render a match as plain text lines: one row per side plus the result if completed."""
    feed = generate_score_data(match)
    games_count = match.get('gamesCount') or DEFAULT_GAMES_COUNT
    scores = match.get('scores') or {}
    lines = [f"{match.get('team1Name', 'Team 1')} vs {match.get('team2Name', 'Team 2')} ({feed['matchStatus']})"]
    for row, side in zip(feed['tableData'], ('player1', 'player2')):
        games = [str((scores.get(side) or {}).get(game_key(i), 0)) for i in range(games_count)]
        serve = f" *{row['serve']}" if row['serve'] else ''
        lines.append(f"  {row['playerName']:<30} {' '.join(games)}  total {row['points']}{serve}")
    if match.get('status') == 'completed':
        result = decide_winner(scores, games_count)
        lines.append(f"  Result: {match.get('winnerName') or result.winner} {result.final_score}")
    return lines


def main():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    parser = argparse.ArgumentParser(description='Show the scoreboard of a stored match')
    parser.add_argument('match_id', nargs='?', help='Match id (omit to list all matches)')
    parser.add_argument('--data-dir', default=os.environ.get('MATCH_DATA_DIR', os.path.join(base_dir, 'data')))
    args = parser.parse_args()

    store = YamlMatchStore(args.data_dir)

    if not args.match_id:
        matches = store.find()
        if not matches:
            print("No matches found. Check the data directory.")
            return 0
        for match in matches:
            print(f"{match['id']}: {match.get('team1Name')} vs {match.get('team2Name')} [{match.get('status') or 'scheduled'}]")
        return 0

    try:
        match = store.get(args.match_id)
    except MatchNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in format_scoreboard(match):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())

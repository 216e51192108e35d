"""
Substitution eligibility within a fixture group.

A fixture group is the set of matches played between the same two teams on
the same date and court. Rules applied to each roster player:

1. not already on court in the current match
2. not already playing 2 other matches of the group for the same team
3. not already playing another match of the same category for the same team
4. gender must fit the match category (women's/ladies, men's, mixed)

A team may substitute only once across the whole fixture group.
"""
from typing import Dict, List, Optional

from umpire.models import Player, GENDER_FEMALE, GENDER_MALE, team_slots, players_on_court

MAX_MATCHES_PER_PLAYER = 2


def team_side_in(match: Dict, team_id) -> Optional[str]:
    """Return 'team1'/'team2' for the side a team plays in a match, or None."""
    if team_id is None:
        return None
    if match.get('team1') == team_id:
        return 'team1'
    if match.get('team2') == team_id:
        return 'team2'
    return None


def _plays_for_team(match: Dict, player_name: str, team_id) -> bool:
    side = team_side_in(match, team_id)
    if side is None:
        return False
    return player_name in [match.get(key) for key in team_slots(side)]


def player_match_count(matches: List[Dict], player_name: str, team_id, exclude_match_id=None) -> int:
    """Count group matches in which a player is assigned for the given team."""
    if not player_name:
        return 0
    return sum(
        1 for m in matches
        if m.get('id') != exclude_match_id and _plays_for_team(m, player_name, team_id)
    )


def _same_category(match: Dict, current: Dict) -> bool:
    match_type = current.get('matchType')
    label = current.get('matchTypeLabel')
    if match_type and (match.get('matchType') == match_type or match.get('matchTypeLabel') == match_type):
        return True
    return bool(label) and match.get('matchTypeLabel') == label


def in_same_category(matches: List[Dict], player_name: str, team_id, current: Dict) -> bool:
    return any(
        m.get('id') != current.get('id') and _same_category(m, current)
        and _plays_for_team(m, player_name, team_id)
        for m in matches
    )


def _category(match: Dict) -> str:
    return (match.get('matchTypeLabel') or match.get('matchType') or '').lower()


def required_gender(match: Dict, outgoing: Optional[Player]) -> Optional[str]:
    """Gender a substitute must have for this match category, or None when any gender fits."""
    label = _category(match)
    if 'mixed' in label:
        return outgoing.gender if outgoing else None
    if 'women' in label or 'ladies' in label:
        return GENDER_FEMALE
    if 'men' in label:
        return GENDER_MALE
    return None


def player_availability(roster: List[Player], match: Dict, team: str, group: List[Dict],
                        outgoing_player: Optional[str] = None) -> List[Dict]:
    """Annotate each roster player with 'available' and a 'reason' when not available.

    Args:
        roster: Players registered for the substituting team
        match: The current match document
        team: 'team1' or 'team2' (side key in the current match)
        group: All matches of the fixture group (the current one may be included)
        outgoing_player: Name of the player leaving the court

    Returns:
        List of dicts with keys: player, available, reason
    """
    team_id = match.get(team)
    on_court = players_on_court(match)
    outgoing = next((p for p in roster if p.name == outgoing_player), None)
    gender = required_gender(match, outgoing)
    mixed = 'mixed' in _category(match)

    annotated = []
    for player in roster:
        available = True
        reason = ''

        if player.name in on_court:
            available = False
            reason = 'Already on court'

        if available and player_match_count(group, player.name, team_id, match.get('id')) >= MAX_MATCHES_PER_PLAYER:
            available = False
            reason = f'Already in {MAX_MATCHES_PER_PLAYER} matches'

        if available and in_same_category(group, player.name, team_id, match):
            available = False
            reason = 'Already in same category match'

        if available and gender and player.gender != gender:
            available = False
            if mixed:
                reason = 'Must match gender of outgoing player'
            elif gender == GENDER_FEMALE:
                reason = 'Women only match'
            else:
                reason = 'Men only match'

        annotated.append({'player': player, 'available': available, 'reason': reason})
    return annotated


def eligible_substitutes(roster, match, team, group, outgoing_player=None) -> List[Player]:
    return [entry['player'] for entry in player_availability(roster, match, team, group, outgoing_player)
            if entry['available']]


def team_has_substituted(group: List[Dict], team_id) -> bool:
    """True if any match in the group records a substitution made by the given team."""
    for m in group:
        for record in m.get('substitutions') or []:
            if m.get(record.get('team')) == team_id:
                return True
    return False

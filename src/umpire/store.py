"""
Match document stores.

Matches are whole documents keyed by match id. Every write bumps an integer
'revision'; callers may pass expected_revision to update() to get
compare-and-swap semantics instead of last-write-wins.
"""
import copy
import logging
import os
import re
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime

import yaml
from filelock import FileLock, Timeout

from umpire.errors import MatchNotFoundError, RevisionConflictError, StoreError, ValidationError

logger = logging.getLogger(__name__)

# Match ids double as file names in the YAML store
MATCH_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


def _matches(doc, criteria):
    return all(doc.get(key) == value for key, value in criteria.items())


class MatchStore:
    """Interface shared by the YAML and in-memory stores."""

    def get(self, match_id):
        raise NotImplementedError

    def find(self, **criteria):
        raise NotImplementedError

    def _write(self, match):
        raise NotImplementedError

    def get_team(self, team_id):
        raise NotImplementedError

    def save_team(self, team):
        raise NotImplementedError

    def lock(self):
        """Context manager holding the store's write lock (re-entrant)."""
        raise NotImplementedError

    def fixture_group(self, match):
        """All matches in the same tournament and fixture group as `match`, itself included.

        A match without a fixtureGroupId forms a group of one.
        """
        group_id = match.get('fixtureGroupId')
        if not group_id:
            return [self.get(match['id'])]
        criteria = {'fixtureGroupId': group_id}
        if match.get('tournamentId'):
            criteria['tournamentId'] = match['tournamentId']
        group = self.find(**criteria)
        group.sort(key=lambda m: (m.get('matchNumber') or 0, m.get('id')))
        return group

    def create(self, match):
        match = copy.deepcopy(match)
        match.setdefault('id', uuid.uuid4().hex[:12])
        if not isinstance(match['id'], str) or not MATCH_ID_PATTERN.match(match['id']):
            raise ValidationError(f"Invalid match id: {match['id']!r}")
        match['revision'] = 1
        match.setdefault('createdAt', datetime.now().isoformat())
        with self.lock():
            try:
                self.get(match['id'])
            except MatchNotFoundError:
                pass
            else:
                raise StoreError(f"Match already exists: {match['id']}")
            self._write(match)
        return copy.deepcopy(match)

    def update(self, match_id, fields, expected_revision=None):
        """Merge `fields` into a match document and return the stored result.

        Raises:
            MatchNotFoundError: no such match
            RevisionConflictError: expected_revision given and stale
            StoreError: the backing store could not be written
        """
        with self.lock():
            match = self.get(match_id)
            current = match.get('revision', 0)
            if expected_revision is not None and expected_revision != current:
                raise RevisionConflictError(match_id, expected_revision, current)
            match.update(copy.deepcopy(fields))
            match['id'] = match_id
            match['revision'] = current + 1
            self._write(match)
        return copy.deepcopy(match)


class YamlMatchStore(MatchStore):
    """One YAML file per match under <data_dir>/matches, team rosters in <data_dir>/teams.yaml."""

    def __init__(self, data_dir, lock_timeout=10):
        self.data_dir = data_dir
        self.matches_dir = os.path.join(data_dir, 'matches')
        self.teams_file = os.path.join(data_dir, 'teams.yaml')
        os.makedirs(self.matches_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    @contextmanager
    def lock(self):
        try:
            self._lock.acquire()
        except Timeout as e:
            raise StoreError(f'Timed out waiting for data lock: {e}') from e
        try:
            yield
        finally:
            self._lock.release()

    def _match_path(self, match_id):
        match_id = str(match_id)
        if not match_id or '..' in match_id or '/' in match_id or '\\' in match_id:
            raise MatchNotFoundError(match_id)
        return os.path.join(self.matches_dir, f'{match_id}.yaml')

    def get(self, match_id):
        path = self._match_path(match_id)
        if not os.path.exists(path):
            raise MatchNotFoundError(match_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f'Failed to read match {match_id}: {e}') from e
        if not data:
            raise MatchNotFoundError(match_id)
        return data

    def find(self, **criteria):
        found = []
        for filename in sorted(os.listdir(self.matches_dir)):
            if not filename.endswith('.yaml'):
                continue
            match_id = filename[:-len('.yaml')]
            try:
                doc = self.get(match_id)
            except StoreError as e:
                logger.warning(f'Skipping unreadable match file {filename}: {e}')
                continue
            if _matches(doc, criteria):
                found.append(doc)
        return found

    def _write(self, match):
        path = self._match_path(match['id'])
        tmp_path = path + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                yaml.dump(match, f, default_flow_style=False)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f"Failed to save match {match['id']}: {e}") from e

    def _load_teams(self):
        if not os.path.exists(self.teams_file):
            return {}
        try:
            with open(self.teams_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f'Failed to read teams: {e}') from e
        return data if data else {}

    def get_team(self, team_id):
        return self._load_teams().get(team_id)

    def save_team(self, team):
        team = copy.deepcopy(team)
        team.setdefault('id', uuid.uuid4().hex[:12])
        with self.lock():
            teams = self._load_teams()
            teams[team['id']] = team
            try:
                with open(self.teams_file, 'w', encoding='utf-8') as f:
                    yaml.dump(teams, f, default_flow_style=False)
            except OSError as e:
                raise StoreError(f'Failed to save team {team["id"]}: {e}') from e
        return team


class InMemoryMatchStore(MatchStore):
    """Dictionary-backed store. Set fail_writes to simulate a lost connection."""

    def __init__(self, matches=None, teams=None):
        self._matches = {}
        self._teams = {}
        self._lock = threading.RLock()
        self.fail_writes = False
        for match in matches or []:
            self.create(match)
        for team in teams or []:
            self.save_team(team)

    @contextmanager
    def lock(self):
        with self._lock:
            yield

    def get(self, match_id):
        if match_id not in self._matches:
            raise MatchNotFoundError(match_id)
        return copy.deepcopy(self._matches[match_id])

    def find(self, **criteria):
        return [copy.deepcopy(m) for m in self._matches.values() if _matches(m, criteria)]

    def _write(self, match):
        if self.fail_writes:
            raise StoreError('Store unavailable')
        self._matches[match['id']] = copy.deepcopy(match)

    def get_team(self, team_id):
        team = self._teams.get(team_id)
        return copy.deepcopy(team) if team else None

    def save_team(self, team):
        team = copy.deepcopy(team)
        team.setdefault('id', uuid.uuid4().hex[:12])
        self._teams[team['id']] = team
        return copy.deepcopy(team)

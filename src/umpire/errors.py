class ScoringError(Exception):
    pass


class MatchNotFoundError(ScoringError):
    def __init__(self, match_id):
        super().__init__(f"Match not found: {match_id}")
        self.match_id = match_id


class StoreError(ScoringError):
    pass


class RevisionConflictError(StoreError):
    def __init__(self, match_id, expected, actual):
        super().__init__(
            f"Match {match_id} was updated elsewhere (expected revision {expected}, found {actual})"
        )
        self.match_id = match_id
        self.expected = expected
        self.actual = actual


class ValidationError(ScoringError):
    pass


class SubstitutionNotAllowedError(ValidationError):
    pass


class InvalidTransitionError(ScoringError):
    pass

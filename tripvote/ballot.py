'''Ballot types, ballot validators and the ballot box.

A ballot is cast by a single trip participant and ranks some or all of the
recommendations generated for the trip. It is submitted as a list of
``(candidate, rank)`` pairs, where rank 1 marks the most preferred
recommendation. A well-formed ballot:

-   ranks at least one candidate, and at most ``max_rankings`` of them,
-   ranks every candidate at most once,
-   uses every rank at most once,
-   uses integer ranks between 1 and ``max_rank`` that form the consecutive
    sequence ``1, 2, ..., k`` for a ballot ranking k candidates.

The :class:`BallotValidator` collects all problems with a ballot as
:class:`BallotIssue` objects with a stable :class:`IssueKind`, so that they
can be reported back to the participant field by field. Its ``validate()``
method raises :class:`InvalidBallot` carrying those issues; on success, it
returns a :class:`NormalizedBallot` - the candidates ordered from the most
to the least preferred.
'''

import enum
import logging
from typing import Any, Collection, Dict, Iterable, Iterator, List, Optional, \
    Tuple, Union

import tripvote.candidate
from tripvote.candidate import Candidate, CandidateError
from tripvote.persist import simple_serialization

logger = logging.getLogger(__name__)

RankingType = Tuple[Candidate, Any]
IntBoundsTupleType = Tuple[Optional[int], Optional[int]]

DEFAULT_MAX_RANK = 10
DEFAULT_MAX_RANKINGS = 10

PARTICIPANT_KEYS = ('participantId', 'participant_id', 'participant')
CANDIDATE_KEYS = ('recommendationId', 'recommendation_id', 'candidate')


class IssueKind(enum.Enum):
    '''Kinds of problems found with a submitted ballot.'''
    MALFORMED_BALLOT = 'malformed_ballot'
    MALFORMED_RANKING = 'malformed_ranking'
    MISSING_PARTICIPANT = 'missing_participant'
    DUPLICATE_PARTICIPANT = 'duplicate_participant'
    EMPTY_BALLOT = 'empty_ballot'
    TOO_MANY_RANKINGS = 'too_many_rankings'
    INVALID_CANDIDATE = 'invalid_candidate'
    UNKNOWN_CANDIDATE = 'unknown_candidate'
    DUPLICATE_CANDIDATE = 'duplicate_candidate'
    INVALID_RANK_TYPE = 'invalid_rank_type'
    RANK_OUT_OF_BOUNDS = 'rank_out_of_bounds'
    DUPLICATE_RANK = 'duplicate_rank'
    NON_CONSECUTIVE_RANKS = 'non_consecutive_ranks'


class BallotIssue:
    '''A single problem found with a ballot.

    :param field: Path to the offending part of the ballot, in the form
        used by the trip planner API (e.g. ``rankings[2].rank``).
    :param kind: Kind of the problem.
    :param message: Human-readable description.
    '''
    def __init__(self, field: str, kind: IssueKind, message: str):
        self.field = field
        self.kind = kind
        self.message = message

    def prefixed(self, prefix: str) -> 'BallotIssue':
        '''Return the same issue with a path prefix added to its field.'''
        return BallotIssue(f'{prefix}.{self.field}', self.kind, self.message)

    def to_dict(self) -> Dict[str, str]:
        return {
            'field': self.field,
            'code': self.kind.value,
            'message': self.message,
        }

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, BallotIssue):
            return NotImplemented
        return (
            self.field == other.field
            and self.kind == other.kind
            and self.message == other.message
        )

    def __repr__(self):
        return (f'BallotIssue({self.field!r}, {self.kind.name},'
                f' {self.message!r})')


class VoteError(Exception):
    '''A vote is invalid given the election rules.'''
    pass


class InvalidBallot(VoteError):
    '''One or more ballots are malformed.

    :param issues: All problems found; never empty.
    :param participant: Participant whose ballot was rejected, if the error
        concerns a single ballot.
    '''
    def __init__(self,
                 issues: List[BallotIssue],
                 participant: Any = None,
                 ):
        self.issues = list(issues)
        self.participant = participant
        message = 'invalid ballot'
        if participant is not None:
            message += f' of {participant}'
        message += ': ' + '; '.join(
            f'{issue.field}: {issue.message}' for issue in self.issues
        )
        super().__init__(message)

    @property
    def kinds(self) -> List[IssueKind]:
        return [issue.kind for issue in self.issues]


class Ballot:
    '''A ballot as submitted by a participant, not yet validated.

    :param participant: Identifier of the participant casting the ballot.
    :param rankings: ``(candidate, rank)`` pairs, or a mapping of candidates
        to their ranks.
    '''
    def __init__(self,
                 participant: Any,
                 rankings: Union[Iterable[RankingType], Dict[Candidate, Any]],
                 ):
        self.participant = participant
        if hasattr(rankings, 'items'):
            rankings = rankings.items()
        self.rankings = [tuple(pair) for pair in rankings]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Ballot':
        '''Build a ballot from its API form.

        Expects a ``participantId`` key and a ``rankings`` list of objects
        with ``recommendationId`` and ``rank`` keys (snake case and
        ``participant``/``candidate`` keys are accepted, too).

        :raises InvalidBallot: If the structure of the data is not a ballot.
        '''
        if not hasattr(data, 'get'):
            raise InvalidBallot([BallotIssue(
                'root', IssueKind.MALFORMED_BALLOT,
                f'expected a ballot object, got {type(data).__name__}'
            )])
        participant = _first_present(data, PARTICIPANT_KEYS)
        raw_rankings = data.get('rankings')
        if raw_rankings is None:
            raw_rankings = []
        if hasattr(raw_rankings, 'items'):
            return cls(participant, raw_rankings)
        if isinstance(raw_rankings, (str, bytes)) or not hasattr(
            raw_rankings, '__iter__'
        ):
            raise InvalidBallot([BallotIssue(
                'rankings', IssueKind.MALFORMED_BALLOT,
                'rankings must be a list'
            )], participant)
        pairs = []
        issues = []
        for i, item in enumerate(raw_rankings):
            if hasattr(item, 'get'):
                pairs.append((_first_present(item, CANDIDATE_KEYS),
                              item.get('rank')))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                pairs.append(tuple(item))
            else:
                issues.append(BallotIssue(
                    f'rankings[{i}]', IssueKind.MALFORMED_RANKING,
                    'ranking must be a recommendation and rank pair'
                ))
        if issues:
            raise InvalidBallot(issues, participant)
        return cls(participant, pairs)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Ballot):
            return NotImplemented
        return (
            self.participant == other.participant
            and self.rankings == other.rankings
        )

    def __repr__(self):
        return f'Ballot({self.participant!r}, {self.rankings!r})'


class NormalizedBallot:
    '''A validated ballot: candidates in the order of preference.

    :param participant: Identifier of the participant who cast the ballot.
    :param ranking: Candidates ordered from the most preferred (rank 1).
    '''
    def __init__(self, participant: Any, ranking: Iterable[Candidate]):
        self.participant = participant
        self.ranking = tuple(ranking)

    def rank_of(self, candidate: Candidate) -> Optional[int]:
        '''Return the 1-based rank given to the candidate, None if unranked.'''
        try:
            return self.ranking.index(candidate) + 1
        except ValueError:
            return None

    def top_choice(self, active: Collection[Candidate]) -> Optional[Candidate]:
        '''Return the most preferred candidate still in the contest.

        :param active: Candidates not yet eliminated.
        :returns: The highest ranked active candidate, or None if the ballot
            is exhausted (all its candidates have been eliminated).
        '''
        for cand in self.ranking:
            if cand in active:
                return cand
        return None

    def to_ballot(self) -> Ballot:
        return Ballot(self.participant, [
            (cand, i + 1) for i, cand in enumerate(self.ranking)
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'participantId': self.participant,
            'rankings': [
                {'recommendationId': cand, 'rank': i + 1}
                for i, cand in enumerate(self.ranking)
            ],
        }

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.ranking)

    def __len__(self) -> int:
        return len(self.ranking)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, NormalizedBallot):
            return NotImplemented
        return (
            self.participant == other.participant
            and self.ranking == other.ranking
        )

    def __hash__(self) -> int:
        return hash((self.participant, self.ranking))

    def __repr__(self):
        return f'NormalizedBallot({self.participant!r}, {self.ranking!r})'


AnyBallotType = Union[Ballot, NormalizedBallot, Dict[str, Any],
                      Tuple[Any, Any]]


def coerce_ballot(raw: AnyBallotType) -> Ballot:
    '''Convert any of the accepted ballot forms to a :class:`Ballot`.

    Accepts a :class:`Ballot`, a :class:`NormalizedBallot` (ranks are
    reconstructed from its order), an API dictionary (see
    :meth:`Ballot.from_dict`) or a ``(participant, rankings)`` tuple.

    :raises InvalidBallot: If the structure is not recognized.
    '''
    if isinstance(raw, Ballot):
        return raw
    elif isinstance(raw, NormalizedBallot):
        return raw.to_ballot()
    elif hasattr(raw, 'get'):
        return Ballot.from_dict(raw)
    elif isinstance(raw, tuple) and len(raw) == 2:
        participant, rankings = raw
        try:
            return Ballot(participant, rankings)
        except TypeError as e:
            raise InvalidBallot([BallotIssue(
                'rankings', IssueKind.MALFORMED_BALLOT,
                'rankings must be a list of recommendation and rank pairs'
            )], participant) from e
    else:
        raise InvalidBallot([BallotIssue(
            'root', IssueKind.MALFORMED_BALLOT,
            f'unrecognized ballot: {raw!r}'
        )])


class RankChecker:
    '''A helper class to check if an integer rank is in a specified range.

    :param bounds: A tuple with lower and upper bounds (inclusive) for the
        value to be checked. None means the respective bound is not checked.
    :param value_name: Name of the checked value (used in issue messages).
    '''
    def __init__(self,
                 bounds: IntBoundsTupleType = (1, DEFAULT_MAX_RANK),
                 value_name: str = 'rank',
                 ):
        self.min_value, self.max_value = bounds
        self.value_name = value_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bounds': [self.min_value, self.max_value],
            'value_name': self.value_name
        }

    def is_valid(self, value: int) -> bool:
        '''Return True if the value is within the given range.'''
        return (
            (self.min_value is None or value >= self.min_value)
            and (self.max_value is None or value <= self.max_value)
        )

    def describe(self) -> str:
        if self.min_value is not None and self.max_value is not None:
            return f'between {self.min_value} and {self.max_value}'
        elif self.min_value is not None:
            return f'at least {self.min_value}'
        elif self.max_value is not None:
            return f'at most {self.max_value}'
        else:
            return 'any integer'


@simple_serialization
class BallotValidator:
    '''Validate ranked ballots of trip participants.

    :param max_rank: The highest rank value allowed on a ballot.
    :param max_rankings: Maximum number of candidates a single ballot can
        rank. None means unlimited.
    :param nominator: Nominator used to check the candidate identifiers.
    '''
    def __init__(self,
                 max_rank: Optional[int] = DEFAULT_MAX_RANK,
                 max_rankings: Optional[int] = DEFAULT_MAX_RANKINGS,
                 nominator: tripvote.candidate.Nominator =
                     tripvote.candidate.DEFAULT_NOMINATOR,
                 ):
        if max_rank is not None and max_rank < 1:
            raise ValueError(f'max_rank must be positive, got {max_rank}')
        if max_rankings is not None and max_rankings < 1:
            raise ValueError(
                f'max_rankings must be positive, got {max_rankings}'
            )
        self.max_rank = max_rank
        self.max_rankings = max_rankings
        self.nominator = nominator
        self.rank_checker = RankChecker((1, max_rank))

    def find_issues(self,
                    ballot: AnyBallotType,
                    candidates: Optional[Collection[Candidate]] = None,
                    ) -> List[BallotIssue]:
        '''Return all problems with the ballot without raising.

        :param ballot: Ballot to be checked, in any form accepted by
            :func:`coerce_ballot`.
        :param candidates: The candidates that can be voted for. If given,
            ballots ranking other candidates are invalid.
        :returns: A list of issues, empty if the ballot is valid.
        '''
        try:
            ballot = coerce_ballot(ballot)
        except InvalidBallot as e:
            return e.issues
        issues = []
        if ballot.participant is None or ballot.participant == '':
            issues.append(BallotIssue(
                'participantId', IssueKind.MISSING_PARTICIPANT,
                'participant identifier is required'
            ))
        if not ballot.rankings:
            issues.append(BallotIssue(
                'rankings', IssueKind.EMPTY_BALLOT,
                'at least one ranking is required'
            ))
            return issues
        if self.max_rankings is not None and (
            len(ballot.rankings) > self.max_rankings
        ):
            issues.append(BallotIssue(
                'rankings', IssueKind.TOO_MANY_RANKINGS,
                f'at most {self.max_rankings} rankings allowed,'
                f' got {len(ballot.rankings)}'
            ))
        issues.extend(self._candidate_issues(ballot.rankings, candidates))
        issues.extend(self._rank_issues(ballot.rankings))
        return issues

    def validate(self,
                 ballot: AnyBallotType,
                 candidates: Optional[Collection[Candidate]] = None,
                 ) -> NormalizedBallot:
        '''Check the ballot and return it normalized.

        :param ballot: Ballot to be checked.
        :param candidates: The candidates that can be voted for.
        :raises InvalidBallot: If the ballot has any issues.
        :returns: The candidates of the ballot ordered by ascending rank.
        '''
        ballot = coerce_ballot(ballot)
        issues = self.find_issues(ballot, candidates)
        if issues:
            raise InvalidBallot(issues, ballot.participant)
        return _normalize(ballot)

    def validate_all(self,
                     ballots: Iterable[AnyBallotType],
                     candidates: Optional[Collection[Candidate]] = None,
                     ) -> List[NormalizedBallot]:
        '''Check a whole batch of ballots cast in a single trip vote.

        Unlike the checks of a single ballot, this also rejects multiple
        ballots by the same participant.

        :raises InvalidBallot: If any of the ballots has any issues, listing
            all issues of all ballots, prefixed with the ballot index.
        '''
        normalized = []
        issues = []
        seen_participants = {}
        for i, raw in enumerate(ballots):
            try:
                ballot = coerce_ballot(raw)
            except InvalidBallot as e:
                issues.extend(issue.prefixed(f'[{i}]') for issue in e.issues)
                continue
            ballot_issues = self.find_issues(ballot, candidates)
            participant = ballot.participant
            if _is_hashable(participant) and participant is not None:
                if participant in seen_participants:
                    ballot_issues.append(BallotIssue(
                        'participantId', IssueKind.DUPLICATE_PARTICIPANT,
                        f'participant {participant} already cast ballot'
                        f' [{seen_participants[participant]}]'
                    ))
                else:
                    seen_participants[participant] = i
            if ballot_issues:
                issues.extend(
                    issue.prefixed(f'[{i}]') for issue in ballot_issues
                )
            else:
                normalized.append(_normalize(ballot))
        if issues:
            logger.warning('rejecting ballot batch with %d issues',
                           len(issues))
            raise InvalidBallot(issues)
        return normalized

    def _candidate_issues(self,
                          rankings: List[RankingType],
                          candidates: Optional[Collection[Candidate]],
                          ) -> Iterator[BallotIssue]:
        seen = set()
        for i, pair in enumerate(rankings):
            field = f'rankings[{i}].recommendationId'
            if len(pair) != 2:
                yield BallotIssue(
                    f'rankings[{i}]', IssueKind.MALFORMED_RANKING,
                    'ranking must be a recommendation and rank pair'
                )
                continue
            cand = pair[0]
            try:
                self.nominator.validate(cand)
            except CandidateError as e:
                yield BallotIssue(field, IssueKind.INVALID_CANDIDATE, str(e))
                continue
            if candidates is not None and cand not in candidates:
                yield BallotIssue(
                    field, IssueKind.UNKNOWN_CANDIDATE,
                    f'{cand} is not a recommendation of this trip'
                )
            elif cand in seen:
                yield BallotIssue(
                    field, IssueKind.DUPLICATE_CANDIDATE,
                    f'{cand} can only be ranked once'
                )
            seen.add(cand)

    def _rank_issues(self, rankings: List[RankingType]
                     ) -> Iterator[BallotIssue]:
        seen = set()
        all_valid = True
        for i, pair in enumerate(rankings):
            if len(pair) != 2:
                all_valid = False
                continue
            rank = pair[1]
            field = f'rankings[{i}].rank'
            if isinstance(rank, bool) or not isinstance(rank, int):
                all_valid = False
                yield BallotIssue(
                    field, IssueKind.INVALID_RANK_TYPE,
                    f'rank must be an integer, got {rank!r}'
                )
            elif not self.rank_checker.is_valid(rank):
                all_valid = False
                yield BallotIssue(
                    field, IssueKind.RANK_OUT_OF_BOUNDS,
                    f'rank must be {self.rank_checker.describe()}, got {rank}'
                )
            elif rank in seen:
                all_valid = False
                yield BallotIssue(
                    field, IssueKind.DUPLICATE_RANK,
                    f'rank {rank} can only be used once'
                )
            else:
                seen.add(rank)
        # only meaningful once every rank is a unique in-bounds integer
        if all_valid and seen != set(range(1, len(rankings) + 1)):
            yield BallotIssue(
                'rankings', IssueKind.NON_CONSECUTIVE_RANKS,
                'rankings must be consecutive starting from 1, got '
                + ', '.join(str(rank) for rank in sorted(seen))
            )


DEFAULT_VALIDATOR = BallotValidator()


def validate_ballot(raw: AnyBallotType,
                    candidates: Optional[Collection[Candidate]] = None,
                    max_rank: Optional[int] = DEFAULT_MAX_RANK,
                    ) -> NormalizedBallot:
    '''Validate a single ballot with the default rules.

    :param raw: Ballot in any form accepted by :func:`coerce_ballot`.
    :param candidates: The candidates that can be voted for, if known.
    :param max_rank: The highest rank value allowed.
    :raises InvalidBallot: If the ballot is malformed.
    '''
    if max_rank == DEFAULT_MAX_RANK:
        validator = DEFAULT_VALIDATOR
    else:
        validator = BallotValidator(max_rank=max_rank)
    return validator.validate(raw, candidates)


class BallotBox:
    '''Ballots of a single trip vote, at most one per participant.

    Resubmission by a participant replaces their previous ballot as a whole;
    a rejected resubmission leaves the previous ballot in place.

    :param candidates: The candidates that can be voted for.
    :param validator: Validator to check submitted ballots with.
    '''
    def __init__(self,
                 candidates: Optional[Iterable[Candidate]] = None,
                 validator: BallotValidator = DEFAULT_VALIDATOR,
                 ):
        self.candidates = (
            None if candidates is None
            else tripvote.candidate.candidate_set(candidates)
        )
        self.validator = validator
        self._ballots: Dict[Any, NormalizedBallot] = {}

    def submit(self, raw: AnyBallotType) -> NormalizedBallot:
        '''Validate a ballot and store it, replacing any previous one.

        :raises InvalidBallot: If the ballot is malformed.
        '''
        normalized = self.validator.validate(raw, self.candidates)
        if not _is_hashable(normalized.participant):
            raise InvalidBallot([BallotIssue(
                'participantId', IssueKind.MISSING_PARTICIPANT,
                'participant identifier must be hashable'
            )])
        if normalized.participant in self._ballots:
            logger.info('replacing ballot of %s', normalized.participant)
        self._ballots[normalized.participant] = normalized
        return normalized

    def withdraw(self, participant: Any) -> NormalizedBallot:
        '''Remove and return the ballot of the participant.

        :raises KeyError: If the participant has not voted.
        '''
        return self._ballots.pop(participant)

    def ballot_of(self, participant: Any) -> Optional[NormalizedBallot]:
        return self._ballots.get(participant)

    def ballots(self) -> List[NormalizedBallot]:
        '''Return the stored ballots in the order of first submission.'''
        return list(self._ballots.values())

    def __contains__(self, participant: Any) -> bool:
        return participant in self._ballots

    def __len__(self) -> int:
        return len(self._ballots)

    def __iter__(self) -> Iterator[NormalizedBallot]:
        return iter(self.ballots())


def _normalize(ballot: Ballot) -> NormalizedBallot:
    ordered = sorted(ballot.rankings, key=lambda pair: pair[1])
    return NormalizedBallot(
        ballot.participant, [cand for cand, rank in ordered]
    )


def _first_present(data: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _is_hashable(value: Any) -> bool:
    try:
        hash(value)
    except TypeError:
        return False
    return True

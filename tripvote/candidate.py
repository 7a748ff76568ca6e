'''Candidate identifiers and candidate set construction.

A candidate in a trip vote is one of the recommendations generated for the
trip. Votes only ever refer to the recommendation by its identifier, so any
hashable object that is not a collection can serve as a candidate; in
practice these are recommendation UUID strings.

Nominators check that a candidate identifier is acceptable before a ballot
referencing it is counted; :func:`candidate_set` builds the ordered,
deduplicated set of candidates a tally runs over.
'''

from __future__ import annotations

import abc
import re
import collections.abc
from typing import Any, Iterable, Tuple

from tripvote.persist import simple_serialization


UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


class CandidateError(Exception):
    '''A candidate is invalid in the given context.

    :param candidate: Candidate that was found to be invalid.
    :param expected: Definition of a candidate that was expected.
    '''
    def __init__(self, candidate: Any, expected: Any = None):
        self.candidate = candidate
        self.expected = expected
        message = f'invalid candidate: {candidate!r}'
        if expected:
            message += f', must be {expected}'
        super().__init__(message)


class EmptyCandidateSet(CandidateError):
    '''No candidates were supplied for a vote.'''
    def __init__(self):
        super().__init__(None, 'at least one recommendation to vote on')


class Candidate(metaclass=abc.ABCMeta):
    '''An abstract marker class for vote candidates.

    The subclass check is overridden so that any hashable object that is not
    a set, tuple or boolean is accepted.
    '''
    @classmethod
    def __subclasshook__(cls, subcl):
        if cls is Candidate:
            return (
                hasattr(subcl, '__hash__')
                and subcl.__hash__ is not None
                and not issubclass(subcl, collections.abc.Set)
                and not issubclass(subcl, tuple)
                and not issubclass(subcl, bool)
                and subcl is not type(None)
            )
        else:
            return NotImplemented


class Nominator(metaclass=abc.ABCMeta):
    '''An abstract class for nominators (candidate identifier validators).'''
    @abc.abstractmethod
    def validate(self, candidate: Candidate) -> None:
        raise NotImplementedError


@simple_serialization
class RecommendationNominator(Nominator):
    '''Validate that candidates are usable recommendation identifiers.

    :param require_uuid: Whether the identifiers must be UUID strings, as
        issued by the trip planner's persistence layer.
    '''
    def __init__(self, require_uuid: bool = False):
        self.require_uuid = require_uuid

    def validate(self, candidate: Candidate) -> None:
        '''Check whether a candidate is valid.

        :param candidate: Candidate to be checked.
        :raises CandidateError: If a candidate is invalid.
        '''
        if not isinstance(candidate, Candidate):
            raise CandidateError(candidate, 'a hashable identifier')
        if isinstance(candidate, str) and not candidate.strip():
            raise CandidateError(candidate, 'a non-blank identifier')
        if self.require_uuid:
            if not isinstance(candidate, str) or not UUID_PATTERN.match(
                candidate
            ):
                raise CandidateError(candidate, 'a UUID string')


DEFAULT_NOMINATOR = RecommendationNominator()


def candidate_set(candidates: Iterable[Candidate],
                  nominator: Nominator = DEFAULT_NOMINATOR,
                  ) -> Tuple[Candidate, ...]:
    '''Return the candidates as an ordered tuple without duplicates.

    The input order is kept; it is the order in which round snapshots list
    the candidates and the one order-based tie-breakers refer to.

    :param candidates: Candidate identifiers, e.g. the ids of the
        recommendations generated for a trip.
    :param nominator: Nominator to check the individual candidates with.
    :raises EmptyCandidateSet: If no candidates are given.
    :raises CandidateError: If any of the candidates is invalid.
    '''
    if candidates is None:
        raise EmptyCandidateSet()
    ordered = []
    seen = set()
    for cand in candidates:
        nominator.validate(cand)
        if cand not in seen:
            seen.add(cand)
            ordered.append(cand)
    if not ordered:
        raise EmptyCandidateSet()
    return tuple(ordered)

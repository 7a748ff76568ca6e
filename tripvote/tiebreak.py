'''Policies deciding whom to eliminate when several candidates tie for last.

When no candidate holds a majority in an instant-runoff round, the candidate
with the fewest votes is eliminated. If several candidates share the lowest
count, an elimination tie-breaker decides which of them go:

-   :class:`EliminateAll` eliminates all of them at once (the default).
-   :class:`EarlierRounds` looks back at the counts of the earlier rounds and
    eliminates the candidate who was weakest most recently.
-   :class:`InputOrder` eliminates the tied candidate listed last in the
    candidate order, e.g. the recommendation generated last.
-   :class:`Random` draws the candidate to eliminate by lot. Give it a seed
    to make recounts reproducible.

Tie-breakers can be referred to by their names (see :data:`POLICIES`).
'''

from __future__ import annotations

import abc
import random
import logging
from typing import Dict, List, Optional, Sequence, Union

from tripvote.candidate import Candidate
from tripvote.persist import simple_serialization

logger = logging.getLogger(__name__)

RoundCounts = Dict[Candidate, int]


class Tie(frozenset):
    '''Candidates tied at the lowest vote count of a round.'''

    def ordered(self, order: Sequence[Candidate]) -> List[Candidate]:
        '''Return the tied candidates in the given listing order.'''
        return [cand for cand in order if cand in self]


class EliminationTieBreaker(metaclass=abc.ABCMeta):
    '''Choose which of the candidates tied for last place to eliminate.'''

    @abc.abstractmethod
    def eliminate(self,
                  tied: Tie,
                  history: List[RoundCounts],
                  order: Sequence[Candidate],
                  ) -> List[Candidate]:
        '''Select candidates to eliminate from those tied for last place.

        :param tied: Candidates sharing the lowest vote count of the current
            round. There are always at least two of them.
        :param history: Vote counts of the preceding rounds, earliest first.
            Every tied candidate is present in all of them.
        :param order: The listing order of the active candidates.
        :returns: A non-empty list of candidates from the tie, in the
            listing order.
        '''
        raise NotImplementedError


@simple_serialization
class EliminateAll(EliminationTieBreaker):
    '''Eliminate all candidates tied for last place simultaneously.'''

    def eliminate(self,
                  tied: Tie,
                  history: List[RoundCounts],
                  order: Sequence[Candidate],
                  ) -> List[Candidate]:
        return tied.ordered(order)


@simple_serialization
class InputOrder(EliminationTieBreaker):
    '''Eliminate the tied candidate appearing last in the listing order.'''

    def eliminate(self,
                  tied: Tie,
                  history: List[RoundCounts],
                  order: Sequence[Candidate],
                  ) -> List[Candidate]:
        return tied.ordered(order)[-1:]


@simple_serialization
class Random(EliminationTieBreaker):
    '''Eliminate a single tied candidate drawn by lot.

    :param seed: Seed for the random generator. Each draw uses a fresh
        generator seeded with it, so a seeded tie-breaker gives the same
        result for the same tie every time.
    '''
    def __init__(self, seed: Optional[int] = None):
        self.seed = seed

    def eliminate(self,
                  tied: Tie,
                  history: List[RoundCounts],
                  order: Sequence[Candidate],
                  ) -> List[Candidate]:
        rng = random.Random(self.seed)
        drawn = rng.choice(tied.ordered(order))
        logger.info('drew %s for elimination from tie %s', drawn,
                    tied.ordered(order))
        return [drawn]


@simple_serialization
class EarlierRounds(EliminationTieBreaker):
    '''Break the tie by the counts of the earlier rounds.

    The rounds are examined from the latest to the earliest; in each, only
    the still tied candidates with the lowest count stay in the tie. If one
    candidate remains, they are eliminated; if the tie persists through all
    earlier rounds (such as in the first round), the fallback decides.

    :param fallback: Tie-breaker for ties unresolved by the earlier rounds.
        Can be given by name.
    '''
    def __init__(self,
                 fallback: Union[str, EliminationTieBreaker] = 'all',
                 ):
        self.fallback = construct(fallback)

    def eliminate(self,
                  tied: Tie,
                  history: List[RoundCounts],
                  order: Sequence[Candidate],
                  ) -> List[Candidate]:
        remaining = tied
        for counts in reversed(history):
            lowest = min(counts.get(cand, 0) for cand in remaining)
            remaining = Tie(
                cand for cand in remaining if counts.get(cand, 0) == lowest
            )
            if len(remaining) == 1:
                return list(remaining)
        logger.debug('tie %s not resolved by earlier rounds', remaining)
        return self.fallback.eliminate(remaining, history, order)


POLICIES = {
    'all': EliminateAll,
    'earlier_rounds': EarlierRounds,
    'input_order': InputOrder,
    'random': Random,
}

DEFAULT_POLICY = 'all'


def construct(policy: Union[str, EliminationTieBreaker, None]
              ) -> EliminationTieBreaker:
    '''Return a tie-breaker object, creating it by name if needed.

    :param policy: A tie-breaker, its name from :data:`POLICIES`, or None for
        the default (simultaneous elimination).
    :raises ValueError: If the name is not known.
    '''
    if policy is None:
        policy = DEFAULT_POLICY
    if isinstance(policy, str):
        try:
            return POLICIES[policy]()
        except KeyError:
            raise ValueError(
                f'unknown tie-break policy: {policy!r}, available: '
                + ', '.join(POLICIES.keys())
            ) from None
    elif isinstance(policy, EliminationTieBreaker):
        return policy
    else:
        raise ValueError(f'invalid tie-break policy: {policy!r}')


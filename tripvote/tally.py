'''Instant-runoff tally of ranked trip votes.

The participants of a trip rank the recommendations generated for it and the
:class:`InstantRunoffTally` determines a single winning recommendation:

1.  All candidates ranked on at least one ballot enter the contest.
2.  In each round, every ballot counts as one vote for its highest ranked
    candidate still in the contest. Ballots whose candidates have all been
    eliminated are exhausted; they count for nobody and are left out of the
    votes cast in the round.
3.  If a candidate has more than half of the votes cast in the round, or is
    the only one left, they win and the count ends.
4.  Otherwise, the candidate with the fewest votes is eliminated and another
    round follows. Ties for the fewest votes are resolved by an elimination
    tie-breaker from :mod:`tripvote.tiebreak`; by default, all the tied
    candidates are eliminated at once.

If every candidate ends up eliminated (which happens when the last
candidates standing are all tied), there is no winner and :class:`NoWinner`
is raised.

The tally is a pure computation over the ballots given to it. A single
invalid ballot makes the whole tally fail with
:class:`tripvote.ballot.InvalidBallot`; ballots are never dropped silently.
'''

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import tripvote.ballot
import tripvote.candidate
import tripvote.tiebreak
import tripvote.util
from tripvote.ballot import AnyBallotType, NormalizedBallot
from tripvote.candidate import Candidate
from tripvote.persist import simple_serialization
from tripvote.tiebreak import EliminationTieBreaker, Tie

logger = logging.getLogger(__name__)


class VotingSystemError(Exception):
    '''A vote with valid input ended up in an unresolvable state.'''
    pass


class NoWinner(VotingSystemError):
    '''The tally eliminated every candidate without finding a winner.

    :param reason: Description of why no winner could be determined.
    :param rounds: Rounds counted before the tally gave up, for auditing.
    '''
    def __init__(self, reason: str, rounds: Sequence['Round'] = ()):
        self.rounds = tuple(rounds)
        super().__init__(f'no winner: {reason}')


class Round:
    '''A snapshot of the count at one stage of the tally.

    :param number: 1-based round number.
    :param counts: Votes of every candidate in the contest in this round,
        including those with no votes.
    :param eliminated: Candidates eliminated at the end of the round. Empty
        for the final round.
    :param exhausted: Number of ballots that counted for no candidate in this
        round because all their ranked candidates were eliminated.
    '''
    def __init__(self,
                 number: int,
                 counts: Dict[Candidate, int],
                 eliminated: Iterable[Candidate] = (),
                 exhausted: int = 0,
                 ):
        self.number = number
        self.counts = dict(counts)
        self.eliminated = tuple(eliminated)
        self.exhausted = exhausted

    @property
    def votes_cast(self) -> int:
        '''Votes counted in the round, without the exhausted ballots.'''
        return sum(self.counts.values())

    @property
    def is_final(self) -> bool:
        return not self.eliminated

    @property
    def candidates(self) -> List[Candidate]:
        return list(self.counts.keys())

    def leader(self) -> Optional[Candidate]:
        '''Return the candidate with a majority in the round, if any.'''
        return majority_holder(self.counts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'counts': self.counts,
            'eliminated': list(self.eliminated),
            'exhausted': self.exhausted,
        }

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Round):
            return NotImplemented
        return (
            self.number == other.number
            and list(self.counts.items()) == list(other.counts.items())
            and self.eliminated == other.eliminated
            and self.exhausted == other.exhausted
        )

    def __repr__(self):
        return (f'Round({self.number}, {self.counts!r},'
                f' eliminated={self.eliminated!r}, exhausted={self.exhausted})')


class TallyEntry:
    '''Final standing of a single candidate.

    :param candidate: The candidate.
    :param final_votes: Votes in the last round the candidate took part in.
    :param elimination_round: Number of the round at the end of which the
        candidate was eliminated. None for the winner, for candidates still
        in the contest when the winner was found, and for candidates ranked
        on no ballot.
    '''
    def __init__(self,
                 candidate: Candidate,
                 final_votes: int,
                 elimination_round: Optional[int] = None,
                 ):
        self.candidate = candidate
        self.final_votes = final_votes
        self.elimination_round = elimination_round

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidate': self.candidate,
            'final_votes': self.final_votes,
            'elimination_round': self.elimination_round,
        }

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, TallyEntry):
            return NotImplemented
        return (
            self.candidate == other.candidate
            and self.final_votes == other.final_votes
            and self.elimination_round == other.elimination_round
        )

    def __repr__(self):
        return (f'TallyEntry({self.candidate!r}, {self.final_votes},'
                f' elimination_round={self.elimination_round})')


class VotingResult:
    '''The outcome of a trip vote.

    :param winner: The winning candidate.
    :param rounds: All rounds of the tally, the final one last.
    :param final_tally: Final standing of every candidate, the winner first.
    '''
    def __init__(self,
                 winner: Candidate,
                 rounds: Iterable[Round],
                 final_tally: Iterable[TallyEntry],
                 ):
        self.winner = winner
        self.rounds = tuple(rounds)
        self.final_tally = tuple(final_tally)

    @property
    def final_round(self) -> Round:
        return self.rounds[-1]

    @property
    def eliminations(self) -> Dict[Candidate, int]:
        '''Map eliminated candidates to the round they were eliminated in.'''
        return {
            cand: rnd.number
            for rnd in self.rounds for cand in rnd.eliminated
        }

    def entry_for(self, candidate: Candidate) -> TallyEntry:
        '''Return the final tally entry of the candidate.

        :raises KeyError: If the candidate was not part of the vote.
        '''
        for entry in self.final_tally:
            if entry.candidate == candidate:
                return entry
        raise KeyError(candidate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'winner': self.winner,
            'rounds': [rnd.to_dict() for rnd in self.rounds],
            'final_tally': [entry.to_dict() for entry in self.final_tally],
        }

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, VotingResult):
            return NotImplemented
        return (
            self.winner == other.winner
            and self.rounds == other.rounds
            and self.final_tally == other.final_tally
        )

    def __repr__(self):
        return (f'VotingResult(winner={self.winner!r},'
                f' rounds={list(self.rounds)!r},'
                f' final_tally={list(self.final_tally)!r})')


def majority_holder(counts: Dict[Candidate, int]) -> Optional[Candidate]:
    '''Return the candidate with more than half of the votes, if any.'''
    votes_cast = sum(counts.values())
    for cand, n_votes in counts.items():
        if 2 * n_votes > votes_cast:
            return cand
    return None


def count_first_preferences(ballots: Iterable[NormalizedBallot],
                            active: Sequence[Candidate],
                            ) -> Tuple[Dict[Candidate, int], int]:
    '''Count every ballot for its highest ranked active candidate.

    :param ballots: Validated ballots.
    :param active: Candidates still in the contest, in listing order.
    :returns: A 2-tuple of the vote counts of all active candidates (in
        listing order, zero counts included) and the number of exhausted
        ballots.
    '''
    counts = {cand: 0 for cand in active}
    exhausted = 0
    for ballot in ballots:
        choice = ballot.top_choice(counts)
        logger.debug('ballot of %s counts for %s', ballot.participant, choice)
        if choice is None:
            exhausted += 1
        else:
            counts[choice] += 1
    return counts, exhausted


@simple_serialization
class InstantRunoffTally:
    '''Tally ranked ballots by instant-runoff voting.

    :param validator: Validator to check the ballots with before counting.
    :param tiebreaker: Decides whom to eliminate when several candidates tie
        for the fewest votes. Can be given by name (see
        :data:`tripvote.tiebreak.POLICIES`); the default eliminates all of
        them.
    '''
    def __init__(self,
                 validator: tripvote.ballot.BallotValidator =
                     tripvote.ballot.DEFAULT_VALIDATOR,
                 tiebreaker: Union[str, EliminationTieBreaker, None] = None,
                 ):
        self.validator = validator
        self.tiebreaker = tripvote.tiebreak.construct(tiebreaker)

    def evaluate(self,
                 candidates: Iterable[Candidate],
                 ballots: Iterable[AnyBallotType],
                 ) -> VotingResult:
        '''Validate the ballots and determine the winner.

        :param candidates: The recommendations voted on, in listing order.
        :param ballots: One ballot per participant, in any form accepted by
            :func:`tripvote.ballot.coerce_ballot`.
        :raises EmptyCandidateSet: If no candidates are given.
        :raises InvalidBallot: If any of the ballots is malformed.
        :raises NoWinner: If there are no ballots or all candidates end up
            eliminated.
        '''
        order = tripvote.candidate.candidate_set(candidates)
        normalized = self.validator.validate_all(ballots, order)
        logger.info('tallying %d ballots over %d candidates',
                    len(normalized), len(order))
        return self.count(normalized, order)

    def count(self,
              ballots: Sequence[NormalizedBallot],
              order: Sequence[Candidate] = (),
              ) -> VotingResult:
        '''Run the rounds of the tally over already validated ballots.

        :param ballots: Validated ballots.
        :param order: Listing order of the candidates. Candidates from it
            that nobody ranked are reported in the final tally with no votes.
        :raises NoWinner: If there are no ballots or all candidates end up
            eliminated.
        '''
        active = tripvote.util.contested_candidates(
            [ballot.ranking for ballot in ballots], order
        )
        if not active:
            raise NoWinner('no ballots cast')
        rounds = []
        while active:
            rnd = self.next_round(ballots, active, rounds)
            rounds.append(rnd)
            if rnd.is_final:
                winner = rnd.leader()
                if winner is None:
                    winner = rnd.candidates[0]    # sole candidate left
                logger.info('%s wins in round %d', winner, rnd.number)
                return VotingResult(
                    winner, rounds, self._final_tally(winner, rounds, order)
                )
            active = [cand for cand in active if cand not in rnd.eliminated]
        logger.warning('all candidates eliminated after %d rounds',
                       len(rounds))
        raise NoWinner(
            'all remaining candidates tied and were eliminated in round '
            f'{rounds[-1].number}',
            rounds
        )

    def next_round(self,
                   ballots: Sequence[NormalizedBallot],
                   active: Sequence[Candidate],
                   previous: Sequence[Round] = (),
                   ) -> Round:
        '''Count one round of the tally.

        :param ballots: Validated ballots.
        :param active: Candidates still in the contest, in listing order.
        :param previous: The rounds counted so far.
        :returns: The round; it is final (has no eliminations) if a winner
            has been found.
        '''
        number = len(previous) + 1
        counts, exhausted = count_first_preferences(ballots, active)
        logger.info('round %d vote totals: %s (%d exhausted)', number,
                    tripvote.util.descending_dict(counts), exhausted)
        if len(counts) == 1 or majority_holder(counts) is not None:
            return Round(number, counts, (), exhausted)
        eliminated = self.select_eliminated(
            counts, [rnd.counts for rnd in previous]
        )
        logger.info('round %d eliminating %s', number, eliminated)
        return Round(number, counts, eliminated, exhausted)

    def select_eliminated(self,
                          counts: Dict[Candidate, int],
                          history: List[Dict[Candidate, int]],
                          ) -> List[Candidate]:
        '''Select the candidates with the fewest votes for elimination.'''
        lowest = min(counts.values())
        tied = [cand for cand, n_votes in counts.items() if n_votes == lowest]
        if len(tied) == 1:
            return tied
        logger.info('tie for elimination at %d votes: %s', lowest, tied)
        order = list(counts.keys())
        eliminated = self.tiebreaker.eliminate(Tie(tied), history, order)
        if not eliminated or any(cand not in tied for cand in eliminated):
            raise VotingSystemError(
                f'tie-breaker {self.tiebreaker!r} selected {eliminated!r}'
                f' from tie {tied!r}'
            )
        return [cand for cand in order if cand in eliminated]

    def _final_tally(self,
                     winner: Candidate,
                     rounds: Sequence[Round],
                     order: Sequence[Candidate],
                     ) -> List[TallyEntry]:
        last_votes = {}
        eliminated_in = {}
        for rnd in rounds:
            last_votes.update(rnd.counts)
            for cand in rnd.eliminated:
                eliminated_in[cand] = rnd.number
        listed = list(order) + [c for c in last_votes if c not in order]
        entries = [
            TallyEntry(cand, last_votes.get(cand, 0), eliminated_in.get(cand))
            for cand in listed
        ]

        def standing(entry: TallyEntry) -> Tuple[int, int, int]:
            if entry.candidate == winner:
                return (0, 0, 0)
            elif entry.candidate not in last_votes:
                return (3, 0, 0)    # ranked on no ballot
            elif entry.elimination_round is None:
                return (1, 0, -entry.final_votes)
            else:
                return (2, -entry.elimination_round, -entry.final_votes)

        return sorted(entries, key=standing)


DEFAULT_TALLY = InstantRunoffTally()


def tally(candidates: Iterable[Candidate],
          ballots: Iterable[AnyBallotType],
          tiebreaker: Union[str, EliminationTieBreaker, None] = None,
          ) -> VotingResult:
    '''Validate the ballots of a trip vote and determine the winner.

    :param candidates: The recommendations voted on, in listing order.
    :param ballots: One ballot per participant.
    :param tiebreaker: Elimination tie-break policy (object or name); the
        default eliminates all candidates tied for the fewest votes.
    :raises EmptyCandidateSet: If no candidates are given.
    :raises InvalidBallot: If any of the ballots is malformed.
    :raises NoWinner: If no winner can be determined.
    '''
    if tiebreaker is None:
        evaluator = DEFAULT_TALLY
    else:
        evaluator = InstantRunoffTally(tiebreaker=tiebreaker)
    return evaluator.evaluate(candidates, ballots)

import sys
import os
import random

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import tripvote.tally
import tripvote.tiebreak
from tripvote.ballot import InvalidBallot, IssueKind, NormalizedBallot
from tripvote.candidate import EmptyCandidateSet
from tripvote.tally import InstantRunoffTally, NoWinner, Round, TallyEntry, \
    VotingSystemError


def make_ballots(rankings):
    '''Create API-style ballots from rank-1-first candidate lists.'''
    return [
        {
            'participantId': f'p{i}',
            'rankings': [
                {'recommendationId': cand, 'rank': rank}
                for rank, cand in enumerate(ranking, start=1)
            ],
        }
        for i, ranking in enumerate(rankings)
    ]


def expand(counted_rankings):
    rankings = []
    for ranking, n_ballots in counted_rankings:
        rankings.extend([ranking] * n_ballots)
    return make_ballots(rankings)


# four rounds' worth of ballots where the second round ties B and C for last
RUNOFF_TIE = expand([
    (['A'], 4),
    (['B'], 3),
    (['C', 'B'], 2),
    (['D', 'C', 'B'], 1),
])


def test_first_round_majority():
    # X holds 2 of 3 first preferences, which is a majority right away
    result = tripvote.tally.tally(
        ['X', 'Y', 'Z'],
        make_ballots([['X', 'Y', 'Z'], ['Y', 'Z', 'X'], ['X', 'Z', 'Y']]),
    )
    assert result.winner == 'X'
    assert result.rounds == (Round(1, {'X': 2, 'Y': 1, 'Z': 0}),)
    assert result.eliminations == {}
    assert result.final_tally == (
        TallyEntry('X', 2),
        TallyEntry('Y', 1),
        TallyEntry('Z', 0),
    )


def test_elimination_transfers():
    result = tripvote.tally.tally(
        ['A', 'B', 'C'],
        make_ballots([['A', 'B'], ['A', 'C'], ['B', 'C'], ['C', 'B'],
                      ['C', 'A']]),
    )
    assert result.winner == 'C'
    assert result.rounds == (
        Round(1, {'A': 2, 'B': 1, 'C': 2}, ['B']),
        Round(2, {'A': 2, 'C': 3}),
    )
    assert result.final_tally == (
        TallyEntry('C', 3),
        TallyEntry('A', 2),
        TallyEntry('B', 1, 1),
    )


def test_exhausted_ballots_leave_denominator():
    result = tripvote.tally.tally(['A', 'B', 'C'], expand([
        (['A'], 3),
        (['B'], 2),
        (['C'], 1),
    ]))
    # 3 of 6 is no majority, 3 of the 5 votes left after C's elimination is
    assert result.rounds == (
        Round(1, {'A': 3, 'B': 2, 'C': 1}, ['C'], 0),
        Round(2, {'A': 3, 'B': 2}, [], 1),
    )
    assert result.final_round.votes_cast == 5
    assert result.winner == 'A'


def test_tie_for_last_eliminates_all():
    result = tripvote.tally.tally(['A', 'B', 'C', 'D'], RUNOFF_TIE)
    assert [rnd.eliminated for rnd in result.rounds] == [('D',), ('B', 'C'), ()]
    assert result.rounds[1].counts == {'A': 4, 'B': 3, 'C': 3}
    assert result.final_round == Round(3, {'A': 4}, [], 6)
    assert result.winner == 'A'
    assert result.final_tally == (
        TallyEntry('A', 4),
        TallyEntry('B', 3, 2),
        TallyEntry('C', 3, 2),
        TallyEntry('D', 1, 1),
    )


@pytest.mark.parametrize('tiebreaker', ['earlier_rounds', 'input_order'])
def test_tie_for_last_single_elimination(tiebreaker):
    result = tripvote.tally.tally(
        ['A', 'B', 'C', 'D'], RUNOFF_TIE, tiebreaker=tiebreaker
    )
    assert [rnd.eliminated for rnd in result.rounds] == [('D',), ('C',), ()]
    assert result.final_round == Round(3, {'A': 4, 'B': 6})
    assert result.winner == 'B'
    assert result.final_tally == (
        TallyEntry('B', 6),
        TallyEntry('A', 4),
        TallyEntry('C', 3, 2),
        TallyEntry('D', 1, 1),
    )


def test_random_tiebreak_reproducible():
    evaluator = InstantRunoffTally(
        tiebreaker=tripvote.tiebreak.Random(seed=2024)
    )
    first = evaluator.evaluate(['A', 'B', 'C', 'D'], RUNOFF_TIE)
    second = evaluator.evaluate(['A', 'B', 'C', 'D'], RUNOFF_TIE)
    assert first == second
    assert len(first.rounds[1].eliminated) == 1
    assert first.winner in ('A', 'B')


def test_two_way_tie_no_winner():
    with pytest.raises(NoWinner) as excinfo:
        tripvote.tally.tally(['X', 'Y'], make_ballots([['X'], ['Y']]))
    assert excinfo.value.rounds == (
        Round(1, {'X': 1, 'Y': 1}, ['X', 'Y']),
    )


def test_two_way_tie_with_tiebreak():
    result = tripvote.tally.tally(
        ['X', 'Y'], make_ballots([['X'], ['Y']]), tiebreaker='input_order'
    )
    assert result.winner == 'X'
    assert result.final_round == Round(2, {'X': 1}, [], 1)


def test_gap_rejects_tally():
    ballots = make_ballots([['A', 'B'], ['B', 'A']])
    ballots[1]['rankings'][1]['rank'] = 3
    with pytest.raises(InvalidBallot) as excinfo:
        tripvote.tally.tally(['A', 'B'], ballots)
    assert excinfo.value.kinds == [IssueKind.NON_CONSECUTIVE_RANKS]
    assert excinfo.value.issues[0].field == '[1].rankings'


def test_invalid_ballot_not_dropped():
    # without the invalid ballot A would win outright
    ballots = make_ballots([['A'], ['A'], ['B']])
    ballots.append({'participantId': 'p3', 'rankings': [
        {'recommendationId': 'B', 'rank': 1},
        {'recommendationId': 'B', 'rank': 2},
    ]})
    with pytest.raises(InvalidBallot):
        tripvote.tally.tally(['A', 'B'], ballots)


def test_unknown_candidate_rejects_tally():
    with pytest.raises(InvalidBallot) as excinfo:
        tripvote.tally.tally(['A', 'B'], make_ballots([['A'], ['C']]))
    assert excinfo.value.kinds == [IssueKind.UNKNOWN_CANDIDATE]


def test_single_candidate():
    result = tripvote.tally.tally(['X'], make_ballots([['X']]))
    assert result.winner == 'X'
    assert result.rounds == (Round(1, {'X': 1}),)
    assert result.final_tally == (TallyEntry('X', 1),)


def test_unranked_candidate_reported():
    result = tripvote.tally.tally(
        ['A', 'B', 'C'], make_ballots([['A'], ['A'], ['B']])
    )
    assert result.rounds == (Round(1, {'A': 2, 'B': 1}),)
    assert result.entry_for('C') == TallyEntry('C', 0)
    assert result.final_tally[-1].candidate == 'C'


def test_no_ballots():
    with pytest.raises(NoWinner):
        tripvote.tally.tally(['A', 'B'], [])


@pytest.mark.parametrize('candidates', [[], None])
def test_no_candidates(candidates):
    with pytest.raises(EmptyCandidateSet):
        tripvote.tally.tally(candidates, make_ballots([['A']]))


def test_normalized_ballots_accepted():
    ballots = [
        NormalizedBallot('alice', ('B', 'A')),
        NormalizedBallot('bob', ('B',)),
    ]
    assert tripvote.tally.tally(['A', 'B'], ballots).winner == 'B'


def test_count_without_order():
    ballots = [
        NormalizedBallot('alice', ('B', 'A')),
        NormalizedBallot('bob', ('A', 'B')),
        NormalizedBallot('carol', ('B', 'C')),
    ]
    result = tripvote.tally.DEFAULT_TALLY.count(ballots)
    assert result.rounds == (Round(1, {'B': 2, 'A': 1, 'C': 0}),)
    assert result.winner == 'B'


class MisbehavingBreaker(tripvote.tiebreak.EliminationTieBreaker):
    def eliminate(self, tied, history, order):
        return ['nobody']


def test_misbehaving_tiebreaker():
    evaluator = InstantRunoffTally(tiebreaker=MisbehavingBreaker())
    with pytest.raises(VotingSystemError):
        evaluator.evaluate(['X', 'Y'], make_ballots([['X'], ['Y']]))


def random_ballots(seed, n_ballots=25, candidates='ABCDE'):
    rng = random.Random(seed)
    rankings = []
    for i in range(n_ballots):
        length = rng.randint(1, len(candidates))
        rankings.append(rng.sample(candidates, length))
    return make_ballots(rankings)


@pytest.mark.parametrize('seed', range(10))
def test_idempotent(seed):
    ballots = random_ballots(seed)
    try:
        first = tripvote.tally.tally(list('ABCDE'), ballots)
    except NoWinner as e:
        with pytest.raises(NoWinner) as excinfo:
            tripvote.tally.tally(list('ABCDE'), ballots)
        assert excinfo.value.rounds == e.rounds
    else:
        assert tripvote.tally.tally(list('ABCDE'), ballots) == first


@pytest.mark.parametrize('seed', range(20))
def test_round_invariants(seed):
    ballots = random_ballots(seed)
    try:
        result = tripvote.tally.tally(list('ABCDE'), ballots)
    except NoWinner as e:
        rounds = e.rounds
        result = None
    else:
        rounds = result.rounds
    active = set(rounds[0].counts)
    for i, rnd in enumerate(rounds):
        assert rnd.number == i + 1
        assert set(rnd.counts) == active
        assert rnd.votes_cast + rnd.exhausted == len(ballots)
        if rnd.eliminated:
            lowest = min(rnd.counts.values())
            assert set(rnd.eliminated) == {
                cand for cand, n_votes in rnd.counts.items()
                if n_votes == lowest
            }
            active -= set(rnd.eliminated)
    if result is None:
        assert not active
    else:
        final = result.final_round
        assert final.is_final
        assert result.winner in final.counts
        assert (
            len(final.counts) == 1
            or 2 * final.counts[result.winner] > final.votes_cast
        )
        assert result.winner == max(final.counts, key=final.counts.get)
        eliminations = result.eliminations
        for entry in result.final_tally:
            assert entry.elimination_round == eliminations.get(entry.candidate)

'''Conversion of voting results to the records of the trip planner.

The API returns a voting result to clients as::

    {
        "winningRecommendationId": "...",
        "rounds": [
            {
                "roundNumber": 1,
                "voteCounts": [{"recommendationId": "...", "votes": 2}, ...],
                "eliminatedRecommendation": "..."
            },
            ...
        ],
        "finalTally": [
            {"recommendationId": "...", "finalVotes": 2,
             "eliminationRound": 1},
            ...
        ]
    }

The final round has no ``eliminatedRecommendation``, nor do the final tally
entries of candidates that were never eliminated have an
``eliminationRound``. When several candidates are eliminated together, the
round lists them as ``eliminatedRecommendations`` instead. Rounds with
exhausted ballots also carry their number as ``exhaustedBallots``.

The persistence layer stores the rounds wrapped as
``"roundsData": {"rounds": [...]}``; use :func:`to_stored` for that form.
:func:`from_record` reads both forms back.
'''

from typing import Any, Dict

import tripvote.io.core
from tripvote.io.core import ParseError
from tripvote.tally import Round, TallyEntry, VotingResult


def round_to_record(rnd: Round) -> Dict[str, Any]:
    record = {
        'roundNumber': rnd.number,
        'voteCounts': [
            {'recommendationId': cand, 'votes': n_votes}
            for cand, n_votes in rnd.counts.items()
        ],
    }
    if len(rnd.eliminated) == 1:
        record['eliminatedRecommendation'] = rnd.eliminated[0]
    elif rnd.eliminated:
        record['eliminatedRecommendations'] = list(rnd.eliminated)
    if rnd.exhausted:
        record['exhaustedBallots'] = rnd.exhausted
    return record


def entry_to_record(entry: TallyEntry) -> Dict[str, Any]:
    record = {
        'recommendationId': entry.candidate,
        'finalVotes': entry.final_votes,
    }
    if entry.elimination_round is not None:
        record['eliminationRound'] = entry.elimination_round
    return record


def to_record(result: VotingResult) -> Dict[str, Any]:
    '''Convert the result to the shape returned over the API.'''
    return {
        'winningRecommendationId': result.winner,
        'rounds': [round_to_record(rnd) for rnd in result.rounds],
        'finalTally': [entry_to_record(e) for e in result.final_tally],
    }


def to_stored(result: VotingResult) -> Dict[str, Any]:
    '''Convert the result to the shape stored by the persistence layer.'''
    return {
        'winningRecommendationId': result.winner,
        'roundsData': {
            'rounds': [round_to_record(rnd) for rnd in result.rounds],
        },
        'finalTally': [entry_to_record(e) for e in result.final_tally],
    }


def from_record(record: Dict[str, Any]) -> VotingResult:
    '''Restore a voting result from its API or stored record.

    :raises ParseError: If the record is missing required parts.
    '''
    try:
        winner = record['winningRecommendationId']
        if 'roundsData' in record:
            rounds_data = record['roundsData']['rounds']
        else:
            rounds_data = record['rounds']
        rounds = [_round_from_record(rnd) for rnd in rounds_data]
        final_tally = [
            TallyEntry(
                entry['recommendationId'],
                entry['finalVotes'],
                entry.get('eliminationRound'),
            )
            for entry in record['finalTally']
        ]
    except (KeyError, TypeError) as e:
        raise ParseError(f'invalid voting result record: {e!r}') from e
    if not rounds:
        raise ParseError('voting result record has no rounds')
    return VotingResult(winner, rounds, final_tally)


def _round_from_record(record: Dict[str, Any]) -> Round:
    if 'eliminatedRecommendation' in record:
        eliminated = [record['eliminatedRecommendation']]
    else:
        eliminated = record.get('eliminatedRecommendations', [])
    return Round(
        record['roundNumber'],
        {
            count['recommendationId']: count['votes']
            for count in record['voteCounts']
        },
        eliminated,
        record.get('exhaustedBallots', 0),
    )


def _parse_record(document: Any) -> VotingResult:
    if not isinstance(document, dict):
        raise ParseError('voting result record must be a JSON object')
    return from_record(document)


load, loads = tripvote.io.core.loaders(_parse_record)
dump, dumps = tripvote.io.core.dumpers(to_record)

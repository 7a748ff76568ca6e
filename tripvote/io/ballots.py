'''Reading and writing the ballots of a trip vote as JSON documents.

The document mirrors what the trip planner API stores for a vote::

    {
        "tripId": "...",
        "candidates": ["<recommendation id>", ...],
        "ballots": [
            {
                "participantId": "...",
                "rankings": [{"recommendationId": "...", "rank": 1}, ...]
            },
            ...
        ]
    }

The ballots are loaded as they are, without validation; the tally validates
them as a batch so that all problems are reported at once.
'''

import dataclasses
from typing import Any, Dict, List, Optional

import tripvote.io.core
from tripvote.ballot import AnyBallotType, coerce_ballot, InvalidBallot
from tripvote.candidate import Candidate
from tripvote.io.core import ParseError


@dataclasses.dataclass
class TripVote:
    """The candidates and ballots of a single trip vote."""
    candidates: List[Candidate]
    ballots: List[AnyBallotType]
    trip_id: Optional[str] = None


def load_document(document: Any) -> TripVote:
    if not isinstance(document, dict):
        raise ParseError('ballot document must be a JSON object')
    candidates = document.get('candidates')
    if not isinstance(candidates, list):
        raise ParseError('ballot document must list the candidates')
    ballots = document.get('ballots', [])
    if not isinstance(ballots, list):
        raise ParseError('ballots must be a list')
    return TripVote(
        candidates=candidates,
        ballots=ballots,
        trip_id=document.get('tripId'),
    )


load, loads = tripvote.io.core.loaders(load_document)


def dump_document(vote: TripVote) -> Dict[str, Any]:
    document = {}
    if vote.trip_id is not None:
        document['tripId'] = vote.trip_id
    document['candidates'] = list(vote.candidates)
    document['ballots'] = [_ballot_to_json(raw) for raw in vote.ballots]
    return document


dump, dumps = tripvote.io.core.dumpers(dump_document)


def _ballot_to_json(raw: AnyBallotType) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        ballot = coerce_ballot(raw)
    except InvalidBallot as e:
        raise ParseError(f'cannot write ballot {raw!r}: {e}') from e
    return {
        'participantId': ballot.participant,
        'rankings': [
            {'recommendationId': cand, 'rank': rank}
            for cand, rank in ballot.rankings
        ],
    }

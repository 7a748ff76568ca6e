
import sys
import os
import io
import json

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import tripvote.__main__
import tripvote.persist
import tripvote.tiebreak
from tripvote.io import ParseError
from tripvote.tally import InstantRunoffTally

DATA_DIR = os.path.join(os.path.dirname(__file__), 'io', 'data')

TIED_DOCUMENT = {
    'candidates': ['X', 'Y'],
    'ballots': [
        {'participantId': 'alice',
         'rankings': [{'recommendationId': 'X', 'rank': 1}]},
        {'participantId': 'bob',
         'rankings': [{'recommendationId': 'Y', 'rank': 1}]},
    ],
}


def run_main(document, **kwargs):
    return tripvote.__main__.main(io.StringIO(json.dumps(document)), **kwargs)


def test_text_output(capsys):
    with open(os.path.join(DATA_DIR, 'trip_ballots.json'),
              encoding='utf8') as infile:
        assert tripvote.__main__.main(infile) == 0
    out = capsys.readouterr().out
    assert 'Round 1 (6 votes, 0 exhausted ballots)' in out
    assert 'eliminated in round 1' in out
    assert out.rstrip().endswith('Winner: santorini')


def test_json_output(capsys):
    with open(os.path.join(DATA_DIR, 'trip_ballots.json'),
              encoding='utf8') as infile:
        assert tripvote.__main__.main(infile, output_format='json') == 0
    record = json.loads(capsys.readouterr().out)
    assert record['winningRecommendationId'] == 'santorini'
    assert len(record['rounds']) == 2


def test_invalid_ballot(capsys):
    document = {
        'candidates': ['X', 'Y'],
        'ballots': [{'participantId': 'alice', 'rankings': [
            {'recommendationId': 'X', 'rank': 1},
            {'recommendationId': 'Y', 'rank': 3},
        ]}],
    }
    assert run_main(document) == 1
    err = capsys.readouterr().err
    assert '[0].rankings' in err
    assert 'non_consecutive_ranks' in err


def test_no_winner(capsys):
    assert run_main(TIED_DOCUMENT) == 1
    assert 'no winner' in capsys.readouterr().err


def test_tiebreak_option(capsys):
    assert run_main(TIED_DOCUMENT, tiebreak='input_order',
                    output_format='json') == 0
    record = json.loads(capsys.readouterr().out)
    assert record['winningRecommendationId'] == 'X'


def test_no_ballots():
    with pytest.warns(UserWarning):
        assert run_main({'candidates': ['X'], 'ballots': []}) == 1


def test_unparseable_input(capsys):
    assert tripvote.__main__.main(io.StringIO('{"candidates": ')) == 1
    assert 'invalid JSON' in capsys.readouterr().err


def test_build_tally_config():
    config = io.StringIO(json.dumps(tripvote.persist.to_dict(
        InstantRunoffTally(tiebreaker='earlier_rounds')
    )))
    evaluator = tripvote.__main__.build_tally(config)
    assert isinstance(evaluator.tiebreaker, tripvote.tiebreak.EarlierRounds)


def test_build_tally_override():
    config = io.StringIO(json.dumps(tripvote.persist.to_dict(
        InstantRunoffTally(tiebreaker='earlier_rounds')
    )))
    evaluator = tripvote.__main__.build_tally(config, 'random')
    assert isinstance(evaluator.tiebreaker, tripvote.tiebreak.Random)


@pytest.mark.parametrize('config', [
    '{"class": "tripvote.tiebreak.InputOrder"}',
    '{"class": "os.system"}',
    '{"class"',
])
def test_build_tally_invalid(config):
    with pytest.raises((ParseError, ValueError)):
        tripvote.__main__.build_tally(io.StringIO(config))

import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import tripvote.candidate
from tripvote.candidate import Candidate, CandidateError, EmptyCandidateSet


def check_validation(validator, cand, is_ok, error=CandidateError):
    if is_ok:
        validator.validate(cand)
    else:
        with pytest.raises(error):
            validator.validate(cand)


@pytest.mark.parametrize(('cand', 'is_candidate'), [
    ('santorini', True),
    ('123e4567-e89b-12d3-a456-426614174000', True),
    (42, True),
    (None, False),
    (True, False),
    (('a', 'b'), False),
    (frozenset(['a']), False),
    (['a'], False),
    ({'a': 1}, False),
])
def test_candidate_check(cand, is_candidate):
    assert isinstance(cand, Candidate) == is_candidate


@pytest.mark.parametrize(('cand', 'is_valid'), [
    ('123e4567-e89b-12d3-a456-426614174000', True),
    ('123E4567-E89B-12D3-A456-426614174000', True),
    ('santorini', False),
    ('123e4567-e89b-62d3-a456-426614174000', False),
    (42, False),
])
def test_uuid_nominator(cand, is_valid):
    check_validation(
        tripvote.candidate.RecommendationNominator(require_uuid=True),
        cand, is_valid
    )


@pytest.mark.parametrize(('cand', 'is_valid'), [
    ('santorini', True),
    (7, True),
    ('', False),
    ('   ', False),
    (None, False),
])
def test_basic_nominator(cand, is_valid):
    check_validation(tripvote.candidate.DEFAULT_NOMINATOR, cand, is_valid)


def test_candidate_set_order():
    assert tripvote.candidate.candidate_set(
        ['kyoto', 'lisbon', 'kyoto', 'santorini', 'lisbon']
    ) == ('kyoto', 'lisbon', 'santorini')


@pytest.mark.parametrize('candidates', [[], (), None, iter([])])
def test_candidate_set_empty(candidates):
    with pytest.raises(EmptyCandidateSet):
        tripvote.candidate.candidate_set(candidates)


def test_candidate_set_invalid():
    with pytest.raises(CandidateError):
        tripvote.candidate.candidate_set(['kyoto', ['lisbon']])


def test_empty_is_candidate_error():
    assert issubclass(EmptyCandidateSet, CandidateError)

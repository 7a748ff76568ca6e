'''Various utility functions for other modules of tripvote.

There should normally be no need to use these functions directly.
'''

import operator
from typing import Any, Dict, Iterable, List, Sequence
from numbers import Number

from tripvote.candidate import Candidate


def descending_dict(d: Dict[Any, Number]) -> Dict[Any, Number]:
    return dict(sorted(d.items(), key=operator.itemgetter(1), reverse=True))


def all_ranked_candidates(rankings: Iterable[Sequence[Candidate]]
                          ) -> List[Candidate]:
    '''Return a list of all candidates appearing in any of the rankings.

    Candidates ranked first in any ranking come first, in the order of the
    rankings, then those ranked second, and so on.

    :param rankings: Candidate sequences ordered by preference.
    '''
    rankings = list(rankings)
    output = []
    seen = set()
    rank_i = 0
    while True:
        used = False
        for ranking in rankings:
            if len(ranking) > rank_i:
                used = True
                cand = ranking[rank_i]
                if cand not in seen:
                    seen.add(cand)
                    output.append(cand)
        if used:
            rank_i += 1
        else:
            break
    return output


def contested_candidates(rankings: Iterable[Sequence[Candidate]],
                         order: Sequence[Candidate] = (),
                         ) -> List[Candidate]:
    '''Return the candidates ranked at least once, in a stable order.

    :param rankings: Candidate sequences ordered by preference.
    :param order: The preferred listing order. Ranked candidates missing from
        it follow in the order given by :func:`all_ranked_candidates`.
    '''
    ranked = all_ranked_candidates(rankings)
    ranked_set = set(ranked)
    in_order = [cand for cand in order if cand in ranked_set]
    listed = set(in_order)
    return in_order + [cand for cand in ranked if cand not in listed]

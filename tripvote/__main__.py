"""A commandline tool to tally the ballots of a trip vote.

Reads a JSON ballot document (see :mod:`tripvote.io.ballots`), validates the
ballots and runs the instant-runoff count, showing the rounds and the winner.
"""

import argparse
import io
import json
import logging
import sys
import warnings
from typing import Optional

import tripvote.io.ballots
import tripvote.io.record
import tripvote.persist
import tripvote.tiebreak
from tripvote.ballot import InvalidBallot
from tripvote.candidate import CandidateError
from tripvote.io.core import ParseError
from tripvote.tally import InstantRunoffTally, NoWinner, VotingResult

argparser = argparse.ArgumentParser(
    description=__doc__,
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
)
argparser.add_argument(
    '-i', '--input-file',
    type=argparse.FileType('r', encoding='utf8'),
    help='file to load the ballot document from',
)
argparser.add_argument(
    '-I', '--use-stdin',
    action='store_true',
    help='load the ballot document from standard input',
)
argparser.add_argument(
    '-t', '--tiebreak',
    choices=list(tripvote.tiebreak.POLICIES.keys()),
    help=(
        'policy to resolve ties for elimination; overrides the one given'
        ' in the configuration; default eliminates all tied candidates'
    ),
)
argparser.add_argument(
    '-c', '--config',
    type=argparse.FileType('r', encoding='utf8'),
    help='JSON file with a serialized tally setup',
)
argparser.add_argument(
    '-o', '--output-format',
    choices=['text', 'json'],
    default='text',
    help='show the result as a text table or as the API JSON record',
)
argparser.add_argument(
    '-v', '--verbose',
    action='store_true',
    help='show all tally log messages',
)
argparser.add_argument(
    '-q', '--quiet',
    action='store_true',
    help='do not show any tally log messages',
)


def main(input_file: Optional[io.TextIOBase],
         use_stdin: bool = False,
         tiebreak: Optional[str] = None,
         config: Optional[io.TextIOBase] = None,
         output_format: str = 'text',
         verbose: bool = False,
         quiet: bool = False,
         ) -> int:
    logging.basicConfig(
        level=(
            logging.DEBUG if verbose
            else (logging.WARNING if quiet else logging.INFO)
        ),
        format='%(levelname)-10s %(message)s'
    )
    if use_stdin:
        input_file = sys.stdin
    try:
        trip_vote = tripvote.io.ballots.load(input_file)
        evaluator = build_tally(config, tiebreak)
    except (ParseError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 1
    if not trip_vote.ballots:
        warnings.warn('no ballots cast: cannot tally the vote, terminating')
        return 1
    try:
        result = evaluator.evaluate(trip_vote.candidates, trip_vote.ballots)
    except InvalidBallot as e:
        print('Invalid ballots, the vote cannot be tallied:', file=sys.stderr)
        for issue in e.issues:
            print(f'  {issue.field}: {issue.message} ({issue.kind.value})',
                  file=sys.stderr)
        return 1
    except (NoWinner, CandidateError) as e:
        print(str(e), file=sys.stderr)
        return 1
    if output_format == 'json':
        tripvote.io.record.dump(sys.stdout, result)
    else:
        show_result(result)
    return 0


def build_tally(config: Optional[io.TextIOBase] = None,
                tiebreak: Optional[str] = None,
                ) -> InstantRunoffTally:
    """Create the tally from a serialized setup and/or a tie-break name."""
    if config is None:
        return InstantRunoffTally(tiebreaker=tiebreak)
    try:
        evaluator = tripvote.persist.from_dict(json.load(config))
    except json.JSONDecodeError as e:
        raise ParseError(f'invalid tally configuration: {e}') from e
    if not isinstance(evaluator, InstantRunoffTally):
        raise ValueError(f'configuration does not define a tally: {evaluator!r}')
    if tiebreak is not None:
        evaluator.tiebreaker = tripvote.tiebreak.construct(tiebreak)
    return evaluator


def show_result(result: VotingResult) -> None:
    """Show the rounds of the tally and the final standings."""
    for rnd in result.rounds:
        print()
        print(f'Round {rnd.number} ({rnd.votes_cast} votes,'
              f' {rnd.exhausted} exhausted ballots)')
        n_just_chars = max(len(str(cand)) for cand in rnd.counts)
        for cand, n_votes in rnd.counts.items():
            note = ' eliminated' if cand in rnd.eliminated else ''
            print(' ' * 4 + str(cand).ljust(n_just_chars),
                  str(n_votes).rjust(4) + note)
    print()
    print('Final tally:')
    n_just_chars = max(len(str(e.candidate)) for e in result.final_tally)
    for entry in result.final_tally:
        if entry.candidate == result.winner:
            note = 'winner'
        elif entry.elimination_round is not None:
            note = f'eliminated in round {entry.elimination_round}'
        else:
            note = ''
        print(' ' * 4 + str(entry.candidate).ljust(n_just_chars),
              str(entry.final_votes).rjust(4), note)
    print()
    print('Winner:', result.winner)


def run() -> None:
    args = argparser.parse_args()
    if not args.input_file and not args.use_stdin:
        argparser.print_usage()
    else:
        sys.exit(main(**vars(args)))


if __name__ == '__main__':
    run()

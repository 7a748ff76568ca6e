"""Input/output between tripvote objects and the trip planner's data shapes.

This subpackage is structured into modules by the kind of document handled:
:mod:`tripvote.io.ballots` reads the candidates and ballots of a trip vote,
:mod:`tripvote.io.record` converts voting results to and from the records
stored by the persistence layer and returned by the API.
"""

from tripvote.io.core import ParseError    # noqa: F401

"""tripvote - ranked-choice voting on group trip recommendations.

Participants of a group trip rank the recommendations generated for the trip
and tripvote picks the one the group goes with.

A trip vote involves the following:

-   What can be voted for. The candidates are the recommendations of the
    trip, identified by their ids; the ``candidate`` module checks and orders
    them.
-   What ballots are valid. Each participant ranks some or all candidates
    with consecutive ranks starting at 1; the validators from the ``ballot``
    module check this and report every problem found.
-   How the winner is determined. The ``tally`` module runs an instant-runoff
    count round by round, resolving ties for elimination by the policies
    from the ``tiebreak`` module.

The ``io`` subpackage converts the ballots and results to and from the
documents stored and served by the trip planner, and the ``persist`` module
serializes the tally setup itself.
"""

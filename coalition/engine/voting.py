"""
Vote tally.
Weight per vote is 1 + influence spent; abstentions count toward neither side.
"""

from dataclasses import dataclass

from coalition.engine.definitions import CardOption
from coalition.engine.state import Vote, VOTE_YES, VOTE_NO, VOTE_ABSTAIN

OUTCOME_PASSED = "passed"
OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class VoteTally:
    yes_count: int
    no_count: int
    abstain_count: int  # number of abstaining voters, not weight
    outcome: str
    margin: str

    @property
    def passed(self) -> bool:
        return self.outcome == OUTCOME_PASSED


def vote_weight(vote: Vote) -> int:
    if vote.choice == VOTE_ABSTAIN:
        return 0
    return 1 + vote.influence_spent


def determine_vote_outcome(yes_count: int, no_count: int) -> str:
    """Strict majority. Ties, including 0-0, fail."""
    return OUTCOME_PASSED if yes_count > no_count else OUTCOME_FAILED


def calculate_vote_margin(yes_count: int, no_count: int) -> str:
    """Larger count first, regardless of side: calculate_vote_margin(2, 3) == "3-2"."""
    return f"{max(yes_count, no_count)}-{min(yes_count, no_count)}"


def tally_votes(votes: list[Vote]) -> VoteTally:
    yes_count = 0
    no_count = 0
    abstain_count = 0
    for vote in votes:
        if vote.choice == VOTE_YES:
            yes_count += vote_weight(vote)
        elif vote.choice == VOTE_NO:
            no_count += vote_weight(vote)
        else:
            abstain_count += 1
    return VoteTally(
        yes_count=yes_count,
        no_count=no_count,
        abstain_count=abstain_count,
        outcome=determine_vote_outcome(yes_count, no_count),
        margin=calculate_vote_margin(yes_count, no_count),
    )


def is_aligned_vote(option: CardOption | None, ideology: str | None, choice: str) -> bool:
    """
    True when the vote follows the voter's content-table reaction:
    yes on an option that lists the ideology as aligned, or no on one that opposes it.
    """
    if option is None or ideology is None:
        return False
    if choice == VOTE_YES:
        return option.aligned_movement(ideology) is not None
    if choice == VOTE_NO:
        return option.opposed_movement(ideology) is not None
    return False

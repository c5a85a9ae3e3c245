"""
Political concept detection for resolved turns and crises.
Returned ids are keys into Definitions.concepts; order is fixed so the
history log is deterministic.
"""

from coalition.engine.definitions import CardOption
from coalition.engine.state import NationState, VoteRecord, VOTE_ABSTAIN, VOTE_YES
from coalition.engine.voting import VoteTally

COALITION_BUILDING = "coalition-building"
FISCAL_RESPONSIBILITY = "fiscal-responsibility"
POLITICAL_CAPITAL = "political-capital"
COLLECTIVE_ACTION = "collective-action"
TRUST_AND_COMMITMENT = "trust-and-commitment"
CRISIS_MANAGEMENT = "crisis-management"
IDEOLOGICAL_COMPROMISE = "ideological-compromise"
INSTITUTIONAL_STABILITY = "institutional-stability"
STRATEGIC_VOTING = "strategic-voting"


def detect_turn_concepts(
    votes: list[VoteRecord],
    option: CardOption | None,
    tally: VoteTally,
    nation_before: NationState,
    nation_after: NationState,
    deals_resolved: list[str],
) -> list[str]:
    concepts = []

    yes_ideologies = {v.ideology for v in votes if v.choice == VOTE_YES and v.ideology}
    if tally.passed and len(yes_ideologies) >= 2:
        concepts.append(COALITION_BUILDING)

    if nation_after.budget < nation_before.budget:
        concepts.append(FISCAL_RESPONSIBILITY)

    if any(v.influence_spent > 0 for v in votes):
        concepts.append(POLITICAL_CAPITAL)

    if deals_resolved:
        concepts.append(TRUST_AND_COMMITMENT)

    if option is not None and any(
        v.choice == VOTE_YES and option.opposed_movement(v.ideology) is not None for v in votes
    ):
        concepts.append(IDEOLOGICAL_COMPROMISE)

    if nation_after.stability < nation_before.stability:
        concepts.append(INSTITUTIONAL_STABILITY)

    if any(v.choice != VOTE_ABSTAIN and not v.aligned_with_ideology for v in votes):
        concepts.append(STRATEGIC_VOTING)

    return concepts


def detect_crisis_concepts(success: bool) -> list[str]:
    concepts = [COLLECTIVE_ACTION]
    if success:
        concepts.append(CRISIS_MANAGEMENT)
    return concepts

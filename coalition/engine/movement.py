"""
Movement calculation.
Pure functions of (player, nation, option, roll, outcome); resolving the
same inputs twice always produces the same deltas.
"""

from coalition.engine.definitions import CardOption
from coalition.engine.nation import nation_modifier
from coalition.engine.state import MovementRecord, NationState, Player


def ideology_modifier(option: CardOption | None, ideology: str | None) -> int:
    """+movement for an aligned ideology, -movement for an opposed one, else 0."""
    if option is None or ideology is None:
        return 0
    modifier = 0
    aligned = option.aligned_movement(ideology)
    if aligned is not None:
        modifier += aligned
    opposed = option.opposed_movement(ideology)
    if opposed is not None:
        modifier -= opposed
    return modifier


def calculate_movement(
    player: Player,
    nation: NationState,
    option: CardOption | None,
    is_active_player: bool,
    dice_roll: int,
    roll_modifier: int,
    passed: bool,
    track_length: int,
    influence_bonus: int = 0,
) -> MovementRecord:
    """
    Compute one player's movement for a resolved vote.

    dice_roll is the raw roll; roll_modifier the budget modifier already
    folded into the active player's base (floored at 1). Base movement and
    ideology modifiers apply only when the vote passed; the nation modifier
    always applies. The total is floored at 0, so positions never regress,
    and the new position is clamped to track_length.
    """
    base = 0
    applied_roll_modifier = 0
    if is_active_player and passed:
        base = max(1, dice_roll + roll_modifier)
        applied_roll_modifier = base - dice_roll

    ideology_mod = ideology_modifier(option, player.ideology) if passed else 0
    nation_mod = nation_modifier(nation)

    total = max(0, base + ideology_mod + nation_mod + influence_bonus)
    position_after = min(track_length, player.position + total)

    return MovementRecord(
        player_id=player.id,
        dice_roll=dice_roll if is_active_player else 0,
        roll_modifier=applied_roll_modifier,
        ideology_modifier=ideology_mod,
        nation_modifier=nation_mod,
        influence_bonus=influence_bonus,
        total_movement=position_after - player.position,
        position_before=player.position,
        position_after=position_after,
    )

"""
Coalition Turn-Resolution Engine
Core rules without web framework or transport.
"""

DICE_SIDES = 6

# Nation collapse bounds (inclusive: reaching the bound collapses)
STABILITY_COLLAPSE = 0
BUDGET_COLLAPSE = -5

# Nation movement modifiers
STABILITY_HIGH = 12  # all players +1 movement
STABILITY_LOW = 3    # all players -1 movement
BUDGET_HIGH = 12     # active player +1 to roll
BUDGET_LOW = 2       # active player -1 to roll

# Nation clamps
STABILITY_MAX = 15
STABILITY_MIN = -5
BUDGET_MAX = 15
BUDGET_MIN = -5

# Influence buckets shown to other players, and the victory floor
INFLUENCE_HIGH = 8
INFLUENCE_LOW = 2
VICTORY_INFLUENCE = 3

# Deal breach: breaker loses, victim gains
BREACH_PENALTY = 2
BREACH_COMPENSATION = 1

# Board zones: (zone_id, last position in zone). Anything beyond is late_term.
BOARD_ZONES = [
    ("early_term", 8),
    ("mid_term", 20),
    ("crisis_zone", 27),
]
LATE_TERM_ZONE = "late_term"

IDEOLOGIES = ["progressive", "conservative", "liberal", "nationalist", "populist"]

"""
Bid ceiling calculations.

A team may never bid so much that it can no longer fill its remaining
roster slots at the BASE price.
"""

from .. import config
from .models import TournamentSettings


def max_bid(
    budget: int,
    spent: int,
    roster_size: int,
    team_size: int,
    base_price_base: int
) -> int:
    """
    Highest legal bid for a team.

    Args:
        budget: Team's total budget
        spent: Amount already spent on rostered players
        roster_size: Players currently on the biddable roster
        team_size: Tournament team size (includes captain and vice-captain)
        base_price_base: BASE category price reserved per remaining slot

    Returns:
        Maximum bid, never negative; 0 when no roster slots remain

    Example:
        >>> max_bid(50000, 10000, 3, 8, 1000)
        36000
    """
    remaining = budget - spent
    slots_left = (team_size - config.RESERVED_SLOTS) - roster_size

    if slots_left <= 0:
        return 0

    # Keep enough to buy every other open slot at BASE
    reserve = (slots_left - 1) * base_price_base
    return max(0, remaining - reserve)


def base_price_for(settings: TournamentSettings, category: str) -> int:
    """Base price for a player category; CAPTAIN / VICE_CAPTAIN fall back to BASE."""
    if category in settings.base_prices:
        return settings.base_prices[category]
    return settings.base_prices.get('BASE', config.DEFAULT_BASE_PRICES['BASE'])

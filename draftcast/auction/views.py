"""
Derived read views of an auction.

Builds the hydrated payload served by GET /api/{id}/state: per-team rosters
with spend and bid ceilings, remaining player tallies, and the current
player on the block.
"""

import logging
from typing import Dict, List

import pandas as pd

from .. import config
from .bidding import base_price_for, max_bid
from .lifecycle import LifecycleInfo
from .models import AuctionState, Player, Team, Tournament

logger = logging.getLogger(__name__)


def merge_profile(player: Player, profiles: Dict[str, dict]) -> dict:
    """Player dict with uploaded profile image / link taking precedence."""
    data = player.to_dict()
    profile = profiles.get(player.id) or {}
    if profile.get('image'):
        data['image'] = profile['image']
    if profile.get('profileUrl'):
        data['profileUrl'] = profile['profileUrl']
    return data


def remaining_player_counts(players: List[Player], sold_ids: List[str]) -> Dict:
    """
    Tally players not yet sold.

    Args:
        players: Player sheet
        sold_ids: Ids already on a roster

    Returns:
        Dict with:
        - by_role: count for every role (zeros included)
        - by_category: count for every category (zeros included)
    """
    sold = set(sold_ids)
    df = pd.DataFrame(
        [{'role': p.role, 'category': p.category} for p in players if p.id not in sold],
        columns=['role', 'category'],
    )

    by_role = df['role'].value_counts().reindex(config.PLAYER_ROLES, fill_value=0)
    by_category = df['category'].value_counts().reindex(config.PLAYER_CATEGORIES, fill_value=0)

    return {
        'by_role': {role: int(count) for role, count in by_role.items()},
        'by_category': {cat: int(count) for cat, count in by_category.items()},
    }


def build_team_views(
    tournament: Tournament,
    state: AuctionState,
    teams: List[Team],
    players: List[Player],
    profiles: Dict[str, dict],
    team_profiles: Dict[str, dict]
) -> List[dict]:
    """Teams with hydrated rosters, spend, remaining budget and max bid."""
    settings = tournament.settings
    players_by_id = {p.id: p for p in players}
    views = []

    for team in teams:
        roster = [
            merge_profile(players_by_id[pid], profiles)
            for pid in state.roster_of(team.id)
            if pid in players_by_id
        ]
        spent = state.spent_by(team.id)

        view = team.to_dict()
        logo = (team_profiles.get(team.id) or {}).get('logo')
        if logo:
            view['logo'] = logo

        view.update({
            'roster': roster,
            'spent': spent,
            'remainingBudget': team.budget - spent,
            'playersNeeded': settings.roster_limit - len(roster),
            'maxBid': max_bid(
                team.budget,
                spent,
                len(roster),
                settings.team_size,
                settings.base_prices['BASE'],
            ),
        })
        views.append(view)

    return views


def league_totals(team_views: List[dict]) -> dict:
    """League-wide remaining budget and open slots."""
    total_budget = sum(t['remainingBudget'] for t in team_views)
    total_slots = sum(max(0, t['playersNeeded']) for t in team_views)
    return {
        'totalRemainingBudget': total_budget,
        'totalOpenSlots': total_slots,
        'avgBudgetPerSlot': round(total_budget / total_slots, 2) if total_slots > 0 else 0,
    }


def build_state_view(
    tournament: Tournament,
    state: AuctionState,
    teams: List[Team],
    players: List[Player],
    profiles: Dict[str, dict],
    team_profiles: Dict[str, dict],
    lifecycle: LifecycleInfo,
    include_raw: bool = False
) -> dict:
    """
    Full read view of an auction.

    Args:
        tournament: Tournament config
        state: Current ledger
        teams: Team sheet
        players: Player sheet
        profiles: Player profile overrides
        team_profiles: Team profile overrides
        lifecycle: Lifecycle classification at read time
        include_raw: Attach the raw ledger (authorized callers only)

    Returns:
        JSON-ready dict
    """
    players_by_id = {p.id: p for p in players}
    teams_by_id = {t.id: t for t in teams}

    current = players_by_id.get(state.current_player_id) if state.current_player_id else None
    sold_to = teams_by_id.get(state.sold_to_team_id) if state.sold_to_team_id else None
    counts = remaining_player_counts(players, state.sold_players)
    team_views = build_team_views(tournament, state, teams, players, profiles, team_profiles)

    view = {
        'tournament': {
            'id': tournament.id,
            'name': tournament.name,
            'status': tournament.status,
            'settings': tournament.settings.to_dict(),
            'lifecycle': lifecycle.to_dict(),
        },
        'status': state.status,
        'currentPlayer': merge_profile(current, profiles) if current else None,
        'currentPlayerBasePrice': base_price_for(tournament.settings, current.category) if current else 0,
        'soldToTeam': sold_to.to_dict() if sold_to else None,
        'teams': team_views,
        'leagueTotals': league_totals(team_views),
        'lastUpdate': state.last_update,
        'version': state.version,
        'soldCount': len(state.sold_players),
        'totalPlayers': len(players),
        'pauseMessage': state.pause_message,
        'pauseUntil': state.pause_until,
        'soldPrices': dict(state.sold_prices),
        'remainingByRole': counts['by_role'],
        'remainingAplusCount': counts['by_category']['APLUS'],
        'remainingBaseCount': counts['by_category']['BASE'],
        'biddingDurations': dict(state.bidding_durations),
        'unsoldPlayers': list(state.unsold_players),
        'jokerPlayerId': state.joker_player_id,
        'jokerRequestingTeamId': state.joker_requesting_team_id,
        'usedJokers': dict(state.used_jokers),
        'teamProfiles': team_profiles,
    }

    if include_raw:
        view['state'] = state.to_dict()

    logger.debug(
        f"Built state view for {tournament.id}: {view['soldCount']}/{view['totalPlayers']} sold, "
        f"raw={'yes' if include_raw else 'no'}"
    )
    return view

def _player_of(entry):
    # Accept both a Player and a PlayerWithTiers entry
    return getattr(entry, "player", entry)


def sort_players_by_points(entries):
    return sorted(entries, key=lambda e: _player_of(e).points or 0, reverse=True)


def get_player_rank(player, players) -> int:
    """
    Competition ranking by points: 1 + number of players with strictly more
    points. Tied players share a rank. Returns 0 when ``player`` is not in
    ``players``.
    """
    target = _player_of(player)
    others = [_player_of(p) for p in players]

    if not any(p.id == target.id for p in others):
        return 0

    points = target.points or 0
    return 1 + sum(1 for p in others if (p.points or 0) > points)


def rank_players(entries):
    """Return ``(rank, entry)`` pairs sorted by points, highest first."""
    ordered = sort_players_by_points(entries)
    return [(get_player_rank(e, ordered), e) for e in ordered]


def format_rank(rank: int) -> str:
    if rank % 100 in (11, 12, 13):
        return f"{rank}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(rank % 10, "th")
    return f"{rank}{suffix}"

import pytest
from pydantic import ValidationError

from tierlist.ranking import format_rank, get_player_rank, rank_players
from tierlist.schemas import Player, PlayerCreate, PlayerWithTiers, is_valid_bounty


def make_player(player_id, points):
    return Player(
        id=player_id,
        roblox_id=str(player_id),
        username=f"Player {player_id}",
        avatar_url="https://example.com/a.png",
        points=points,
    )


def test_tied_players_share_rank():
    players = [make_player(1, 300), make_player(2, 300), make_player(3, 100)]

    assert [get_player_rank(p, players) for p in players] == [1, 1, 3]


def test_absent_player_is_unranked():
    players = [make_player(1, 300), make_player(2, 100)]

    assert get_player_rank(make_player(99, 500), players) == 0
    assert get_player_rank(make_player(1, 300), []) == 0


@pytest.mark.parametrize("points", [
    [10, 20, 30, 40],
    [500, 500, 500],
    [0, 1000, 250, 250, 999, 0],
])
def test_more_points_never_ranks_worse(points):
    players = [make_player(i, p) for i, p in enumerate(points, start=1)]

    for a in players:
        for b in players:
            if a.points > b.points:
                assert get_player_rank(a, players) < get_player_rank(b, players)
            elif a.points == b.points:
                assert get_player_rank(a, players) == get_player_rank(b, players)


def test_rank_is_recomputed_for_the_given_list():
    alpha, bravo, charlie = make_player(1, 300), make_player(2, 200), make_player(3, 100)

    assert get_player_rank(charlie, [alpha, bravo, charlie]) == 3
    # Same player, narrower list (e.g. after a category filter)
    assert get_player_rank(charlie, [bravo, charlie]) == 2


def test_rank_players_with_tier_entries():
    entries = [
        PlayerWithTiers(player=make_player(1, 100)),
        PlayerWithTiers(player=make_player(2, 300)),
        PlayerWithTiers(player=make_player(3, 300)),
    ]

    ranked = rank_players(entries)

    assert [(rank, e.player.id) for rank, e in ranked] == [(1, 2), (1, 3), (3, 1)]


@pytest.mark.parametrize("rank,label", [
    (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"),
    (11, "11th"), (12, "12th"), (13, "13th"),
    (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th"),
])
def test_format_rank(rank, label):
    assert format_rank(rank) == label


def test_bounty_format_validation():
    assert is_valid_bounty("5M")
    assert is_valid_bounty("500K")
    assert is_valid_bounty("30m")
    assert not is_valid_bounty("abc")
    assert not is_valid_bounty("5MM")
    assert not is_valid_bounty("")
    assert not is_valid_bounty("5M\n")

    with pytest.raises(ValidationError):
        PlayerCreate(roblox_id="1", username="x", avatar_url="https://example.com/a.png", bounty="abc")

"""Handler behaviour: join, refresh, roll, clear history and presence audiences."""

from __future__ import annotations

import random
from collections import defaultdict
from typing import Any, Callable

import pytest

from candela_dice import handlers
from candela_dice.registry import RoomRegistry
from candela_dice.schemas import Connection, Delivery
from conftest import join_msg


def _inboxes(deliveries: list[Delivery]) -> dict[str, list[dict[str, Any]]]:
    inbox: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for delivery in deliveries:
        for target in delivery.targets:
            inbox[target].append(delivery.message)
    return inbox


def _types(messages: list[dict[str, Any]]) -> list[str]:
    return [m["type"] for m in messages]


@pytest.fixture()
def table(registry: RoomRegistry, make_conn: Callable[[], Connection]):
    """Gale (GM, token gm1) and Bryn (token p2) seated at ABC1."""
    gale, bryn = make_conn(), make_conn()
    handlers.handle_message(registry, gale, join_msg("ABC1", "Gale", "gm1"))
    handlers.handle_message(registry, bryn, join_msg("abc1", "Bryn", "p2"))
    return registry.get("ABC1"), gale, bryn


# ---------------------------------------------------------------------------
# Join & presence
# ---------------------------------------------------------------------------


def test_join_acknowledges_and_elects(registry: RoomRegistry, make_conn) -> None:
    gale = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, gale, join_msg(" abc1 ", "  Gale  ", "gm1")))

    assert list(inbox) == [gale.connection_id]
    joined = inbox[gale.connection_id][0]
    assert joined["type"] == "joined"
    assert joined["data"]["sessionId"] == "ABC1"
    assert joined["data"]["isGM"] is True
    assert joined["data"]["history"] == []
    assert joined["data"]["participants"] == [
        {"connectionId": gale.connection_id, "displayName": "Gale", "isGM": True, "clientId": "gm1"}
    ]
    assert gale.session_id == "ABC1"


def test_second_join_splits_presence_audience(registry: RoomRegistry, make_conn) -> None:
    gale, bryn = make_conn(), make_conn()
    handlers.handle_message(registry, gale, join_msg("ABC1", "Gale", "gm1"))
    inbox = _inboxes(handlers.handle_message(registry, bryn, join_msg("ABC1", "Bryn", "p2")))

    bryn_joined = inbox[bryn.connection_id]
    assert _types(bryn_joined) == ["joined"]
    assert bryn_joined[0]["data"]["isGM"] is False
    participants = bryn_joined[0]["data"]["participants"]
    assert {p["displayName"]: p["isGM"] for p in participants} == {"Gale": True, "Bryn": False}
    assert all("clientId" not in p for p in participants)

    gale_inbox = inbox[gale.connection_id]
    assert _types(gale_inbox) == ["presenceChanged"]
    assert gale_inbox[0]["data"]["change"] == "join"
    assert {p["clientId"] for p in gale_inbox[0]["data"]["participants"]} == {"gm1", "p2"}


def test_third_join_sends_public_view_to_players(registry: RoomRegistry, table, make_conn) -> None:
    room, gale, bryn = table
    cato = make_conn()
    inbox = _inboxes(handlers.join_session(registry, cato, join_msg("ABC1", "Cato", "p3")))

    assert _types(inbox[cato.connection_id]) == ["joined"]
    assert all("clientId" not in p for p in inbox[bryn.connection_id][0]["data"]["participants"])
    assert all("clientId" in p for p in inbox[gale.connection_id][0]["data"]["participants"])


def test_duplicate_gm_token_only_live_gm_connection_gets_tokens(registry: RoomRegistry, make_conn) -> None:
    first_tab, second_tab, bryn = make_conn(), make_conn(), make_conn()
    handlers.handle_message(registry, first_tab, join_msg("ABC1", "Gale", "gm1"))
    handlers.handle_message(registry, second_tab, join_msg("ABC1", "Gale", "gm1"))
    room = registry.get("ABC1")
    assert room.gm_connection_id == second_tab.connection_id

    inbox = _inboxes(handlers.handle_message(registry, bryn, join_msg("ABC1", "Bryn", "p2")))

    assert all("clientId" in p for p in inbox[second_tab.connection_id][0]["data"]["participants"])
    assert all("clientId" not in p for p in inbox[first_tab.connection_id][0]["data"]["participants"])

    hidden = _inboxes(handlers.handle_message(registry, bryn, {"type": "roll", "hidden": True}))
    assert list(hidden) == [second_tab.connection_id]


def test_name_and_token_fallbacks(registry: RoomRegistry, make_conn) -> None:
    conn = make_conn()
    handlers.handle_message(registry, conn, join_msg("ROOM", "   ", None))

    assert conn.name == "Anonymous"
    assert conn.client_id.startswith("c-")

    other = make_conn()
    handlers.handle_message(registry, other, join_msg("ROOM", "x" * 40, "t" * 100))
    assert other.name == "x" * 24
    assert other.client_id == "t" * 64


def test_invalid_session_id(registry: RoomRegistry, make_conn) -> None:
    conn = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, conn, join_msg("   ", "Gale", "gm1")))

    assert inbox[conn.connection_id] == [{"type": "operationFailed", "data": {"message": "Invalid session ID."}}]
    assert len(registry) == 0
    assert conn.session_id is None


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


def test_refresh_requires_session(registry: RoomRegistry, make_conn) -> None:
    conn = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, conn, {"type": "refresh"}))
    assert inbox[conn.connection_id][0]["data"]["message"] == "Not in a session."


def test_refresh_goes_to_caller_only(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    inbox = _inboxes(handlers.handle_message(registry, bryn, {"type": "refresh"}))

    assert list(inbox) == [bryn.connection_id]
    state = inbox[bryn.connection_id][0]
    assert state["type"] == "stateRefreshed"
    assert state["data"]["isGM"] is False
    assert len(state["data"]["participants"]) == 2


# ---------------------------------------------------------------------------
# Rolls & visibility
# ---------------------------------------------------------------------------


def test_roll_requires_session(registry: RoomRegistry, make_conn) -> None:
    conn = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, conn, {"type": "roll", "numDice": 2}))
    assert inbox[conn.connection_id][0]["data"]["message"] == "You must join a session first."


def test_public_roll_reaches_everyone(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    inbox = _inboxes(
        handlers.handle_message(
            registry, bryn, {"type": "roll", "numDice": 3, "numGilded": 1}, rng=random.Random(3)
        )
    )

    assert set(inbox) == {gale.connection_id, bryn.connection_id}
    roll = inbox[bryn.connection_id][0]
    assert roll["type"] == "rollResult"
    assert roll["data"]["by"] == "Bryn"
    assert roll["data"]["clientId"] == "p2"
    assert roll["data"]["hidden"] is False
    assert len(roll["data"]["dice"]) == 3
    assert len(room.history) == 1


def test_huge_dice_count_is_clamped_not_fatal(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    inbox = _inboxes(handlers.handle_message(registry, bryn, {"type": "roll", "numDice": 10**400, "numGilded": 10**400}))

    roll = inbox[bryn.connection_id][0]
    assert roll["type"] == "rollResult"
    assert len(roll["data"]["dice"]) == 1
    assert roll["data"]["dice"][0]["gilded"] is False
    assert bryn.connection_id in room.participants


def test_hidden_roll_only_reaches_gm(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    inbox = _inboxes(
        handlers.handle_message(registry, bryn, {"type": "roll", "numDice": 4, "numGilded": 1, "hidden": True})
    )

    assert list(inbox) == [gale.connection_id]
    roll = inbox[gale.connection_id][0]["data"]
    assert roll["hidden"] is True
    assert len(roll["dice"]) == 4
    assert sum(d["gilded"] for d in roll["dice"]) == 1


def test_hidden_roll_filtered_from_history(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    handlers.handle_message(registry, bryn, {"type": "roll", "numDice": 1, "hidden": True})
    handlers.handle_message(registry, bryn, {"type": "roll", "numDice": 2})

    bryn_state = handlers.refresh_session(registry, bryn)[0].message["data"]
    gale_state = handlers.refresh_session(registry, gale)[0].message["data"]

    assert [r["hidden"] for r in bryn_state["history"]] == [False]
    assert [r["hidden"] for r in gale_state["history"]] == [True, False]


def test_hidden_roll_without_gm_is_kept(registry: RoomRegistry, table, make_conn) -> None:
    room, gale, bryn = table
    room.remove_participant(gale.connection_id)

    inbox = _inboxes(handlers.handle_message(registry, bryn, {"type": "roll", "hidden": True}))

    assert inbox[bryn.connection_id] == [
        {"type": "operationFailed", "data": {"message": "Hidden roll: GM not currently connected."}}
    ]
    assert len(room.history) == 1

    returning = make_conn()
    joined = _inboxes(handlers.handle_message(registry, returning, join_msg("ABC1", "Gale", "gm1")))
    data = joined[returning.connection_id][0]["data"]
    assert data["isGM"] is True
    assert [r["hidden"] for r in data["history"]] == [True]


# ---------------------------------------------------------------------------
# Clearing history
# ---------------------------------------------------------------------------


def test_gm_clears_history_for_room(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    handlers.handle_message(registry, bryn, {"type": "roll"})

    inbox = _inboxes(handlers.handle_message(registry, gale, {"type": "clearHistory"}))

    expected = {"type": "historyCleared", "data": {"sessionId": "ABC1"}}
    assert inbox == {gale.connection_id: [expected], bryn.connection_id: [expected]}
    assert not room.history


def test_player_cannot_clear_history(registry: RoomRegistry, table) -> None:
    room, gale, bryn = table
    handlers.handle_message(registry, bryn, {"type": "roll"})

    inbox = _inboxes(handlers.handle_message(registry, bryn, {"type": "clearHistory"}))

    assert inbox == {
        bryn.connection_id: [{"type": "operationFailed", "data": {"message": "Only the GM can clear history."}}]
    }
    assert len(room.history) == 1


def test_clear_requires_session(registry: RoomRegistry, make_conn) -> None:
    conn = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, conn, {"type": "clearHistory"}))
    assert inbox[conn.connection_id][0]["data"]["message"] == "You must join a session first."


# ---------------------------------------------------------------------------
# Dispatch edge cases
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("data", [None, [], "join", 42])
def test_malformed_frames(registry: RoomRegistry, make_conn, data: Any) -> None:
    conn = make_conn()
    inbox = _inboxes(handlers.handle_message(registry, conn, data))
    assert inbox[conn.connection_id] == [{"type": "operationFailed", "data": {"message": "Malformed message."}}]


def test_unknown_type_is_ignored(registry: RoomRegistry, make_conn) -> None:
    assert handlers.handle_message(registry, make_conn(), {"type": "dance"}) == []


def test_leave_outside_session_is_silent(registry: RoomRegistry, make_conn) -> None:
    assert handlers.handle_message(registry, make_conn(), {"type": "leave"}) == []
    assert handlers.disconnect(registry, make_conn()) == []

"""
房间状态机测试
Tests for the room/game state machine: phases, timers, departures and snapshots
"""

import pytest

from cvauction.core.exceptions import (
    DuplicateBid, GameAlreadyStarted, GameFinished, InvalidBid, NotHost, NotInRoom,
    NotReadyPhase, NotSeller, PlayerCountOutOfRange, ResaleNotActive, RoomNotFound,
    RoundNotActive, SpectatorAction, TooManyRooms
)
from cvauction.schemas.game import RoomState
from cvauction.services.outbox import CONNECTION, ROOM


ROOM_ID = "r1"


def play_round(service, bids):
    for connection_id, amount in bids.items():
        service.submit_bid(ROOM_ID, connection_id, amount)


class TestLobby:

    def test_join_broadcasts_player_list(self, service, publisher, seat):
        seat(service, ROOM_ID, 2)

        lists = publisher.of_type("player_list_updated")
        assert len(lists) == 2
        assert [p["id"] for p in lists[-1]["data"]["players"]] == ["p1", "p2"]
        assert lists[-1]["data"]["host_id"] == "p1"

        joined = [m for m in publisher.messages_for("p2") if m["type"] == "joined"]
        assert joined[0]["data"]["player_id"] == "p2"
        assert joined[0]["data"]["snapshot"]["state"] == "waiting"

    def test_host_leaving_lobby_announces_new_host(self, service, publisher, seat):
        seat(service, ROOM_ID, 3)
        publisher.clear()

        service.leave_room(ROOM_ID, "p1")

        [changed] = publisher.of_type("host_changed")
        assert changed["data"]["host_id"] == "p2"
        assert service.rooms.get(ROOM_ID).host_id == "p2"

    def test_room_torn_down_when_empty(self, service, seat):
        seat(service, ROOM_ID, 1)
        service.leave_room(ROOM_ID, "p1")
        assert service.rooms.get(ROOM_ID) is None

    def test_start_requires_host(self, service, seat):
        seat(service, ROOM_ID, 2)
        with pytest.raises(NotHost):
            service.start_game(ROOM_ID, "p2")

    def test_start_requires_enough_players(self, service, seat):
        seat(service, ROOM_ID, 1)
        service.join_room(ROOM_ID, "s1", "")
        with pytest.raises(PlayerCountOutOfRange):
            service.start_game(ROOM_ID, "p1")
        assert service.rooms.get(ROOM_ID).state == RoomState.WAITING

    def test_total_rounds_equals_players_at_start(self, service, seat):
        seat(service, ROOM_ID, 3)
        service.join_room(ROOM_ID, "s1", "")
        service.start_game(ROOM_ID, "p1")

        room = service.rooms.get(ROOM_ID)
        assert room.total_rounds == 3
        assert room.current_round_number == 1

    def test_cannot_start_twice(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        with pytest.raises(GameAlreadyStarted):
            service.start_game(ROOM_ID, "p1")

    def test_player_cannot_join_mid_game(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        with pytest.raises(GameAlreadyStarted):
            service.join_room(ROOM_ID, "late", "Late")
        assert service.rooms.get(ROOM_ID).get_player("late") is None

    def test_room_limit(self, make_service):
        service = make_service(max_rooms=1)
        service.join_room("a", "c1", "A")
        with pytest.raises(TooManyRooms):
            service.join_room("b", "c2", "B")

    def test_unknown_room_and_member(self, service, seat):
        with pytest.raises(RoomNotFound):
            service.start_game("nowhere", "p1")
        seat(service, ROOM_ID, 2)
        with pytest.raises(NotInRoom):
            service.submit_bid(ROOM_ID, "stranger", 10)


class TestBidding:

    def test_round_start_signals_are_unicast(self, service, publisher, seat):
        ids = seat(service, ROOM_ID, 3)
        service.join_room(ROOM_ID, "s1", "")
        service.start_game(ROOM_ID, "p1")
        room = service.rooms.get(ROOM_ID)
        signals = room.current_round.signals

        items = publisher.items_of_type("private_signal")
        assert all(item.target == CONNECTION for item in items)
        assert {item.key: item.message["data"]["value"] for item in items} == signals

        for pid in ids:
            received = [m for m in publisher.messages_for(pid) if m["type"] == "private_signal"]
            assert [m["data"]["value"] for m in received] == [signals[pid]]
            types = publisher.types_for(pid)
            assert types.index("round_started") < types.index("private_signal")

        assert "private_signal" not in publisher.types_for("s1")
        assert "round_started" in publisher.types_for("s1")

    def test_bid_acknowledged_without_revealing_amount(self, service, publisher, seat):
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        publisher.clear()

        service.submit_bid(ROOM_ID, "p1", 75)

        mine = publisher.messages_for("p1")
        assert [m["data"]["amount"] for m in mine if m["type"] == "bid_accepted"] == [75.0]
        assert "player_has_bid" not in [m["type"] for m in mine]

        others = [m for m in publisher.messages_for("p2") if m["type"] == "player_has_bid"]
        assert others[0]["data"] == {"player_id": "p1", "player_name": "玩家1"}
        assert "amount" not in others[0]["data"]

    def test_invalid_bid_changes_nothing(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")

        with pytest.raises(InvalidBid):
            service.submit_bid(ROOM_ID, "p1", 500)
        with pytest.raises(InvalidBid):
            service.submit_bid(ROOM_ID, "p1", -3)

        room = service.rooms.get(ROOM_ID)
        assert room.current_round.bids == {}
        assert not room.get_player("p1").has_bid

    def test_duplicate_bid_is_silent(self, service, seat):
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        service.submit_bid(ROOM_ID, "p1", 40)

        with pytest.raises(DuplicateBid) as exc_info:
            service.submit_bid(ROOM_ID, "p1", 90)
        assert exc_info.value.silent
        assert service.rooms.get(ROOM_ID).current_round.bids["p1"] == 40.0

    def test_bid_outside_round(self, service, seat):
        seat(service, ROOM_ID, 2)
        with pytest.raises(RoundNotActive):
            service.submit_bid(ROOM_ID, "p1", 10)

    def test_spectator_cannot_bid(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.join_room(ROOM_ID, "s1", "")
        service.start_game(ROOM_ID, "p1")
        with pytest.raises(SpectatorAction):
            service.submit_bid(ROOM_ID, "s1", 10)

    def test_deadline_settles_missing_bids_as_zero(self, make_service, scheduler, publisher, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        service.submit_bid(ROOM_ID, "p2", 30)

        scheduler.advance(59)
        assert service.rooms.get(ROOM_ID).state == RoomState.IN_PROGRESS
        scheduler.advance(1)

        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.ROUND_OVER
        assert room.current_round.bids == {"p2": 30.0, "p1": 0.0, "p3": 0.0}
        [settled] = publisher.of_type("round_settled")
        assert settled["data"]["winner_id"] == "p2"
        assert settled["data"]["payment"] == 0.0

    def test_early_settlement_cancels_deadline(self, make_service, scheduler, publisher, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        [deadline_timer] = scheduler.pending

        play_round(service, {"p1": 100, "p2": 60})
        room = service.rooms.get(ROOM_ID)
        total = room.get_player("p1").total_payoff

        assert deadline_timer.cancelled
        scheduler.fire_stale(deadline_timer)
        service._on_bid_deadline(ROOM_ID, 1)

        assert len(publisher.of_type("round_settled")) == 1
        assert room.get_player("p1").total_payoff == total
        assert room.state == RoomState.ROUND_OVER

    def test_settlement_broadcast_and_log(self, make_service, publisher, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        play_round(service, {"p1": 120, "p2": 90, "p3": 10})

        room = service.rooms.get(ROOM_ID)
        [settled] = publisher.of_type("round_settled")
        data = settled["data"]
        true_value = room.current_round.true_value

        assert data["true_value"] == true_value
        assert [b["amount"] for b in data["sorted_bids"]] == [120.0, 90.0, 10.0]
        assert data["payment"] == 90.0
        assert data["payoff"] == true_value - 90.0
        assert data["totals"]["p1"] == true_value - 90.0
        assert any(f"= {true_value - 90.0:.2f}" in entry for entry in room.log)
        assert all(entry.startswith("[轮次 ") for entry in room.log)
        assert [m["data"]["text"] for m in publisher.of_type("log")] == room.log


class TestFullGame:

    def test_game_runs_to_completion(self, make_service, publisher, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        room = service.rooms.get(ROOM_ID)

        expected = 0.0
        for round_number in (1, 2):
            assert room.state == RoomState.IN_PROGRESS
            assert room.current_round_number == round_number
            play_round(service, {"p1": 100, "p2": 60})
            expected += room.current_round.true_value - 60.0

            assert room.state == RoomState.ROUND_OVER
            service.ready_for_next_round(ROOM_ID, "p1")
            service.ready_for_next_round(ROOM_ID, "p1")
            assert room.state == RoomState.ROUND_OVER
            service.ready_for_next_round(ROOM_ID, "p2")

        assert room.state == RoomState.FINISHED
        assert room.get_player("p1").total_payoff == pytest.approx(expected)

        [finished] = publisher.of_type("game_finished")
        assert finished["data"]["reason"] == "completed"
        ranking = finished["data"]["ranking"]
        assert [entry["rank"] for entry in ranking] == [1, 2]
        payoffs = [entry["total_payoff"] for entry in ranking]
        assert payoffs == sorted(payoffs, reverse=True)

        with pytest.raises(GameFinished):
            service.submit_bid(ROOM_ID, "p1", 10)
        with pytest.raises(GameFinished):
            service.ready_for_next_round(ROOM_ID, "p1")

    def test_ready_timeout_counts_as_ready(self, make_service, scheduler, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        play_round(service, {"p1": 50, "p2": 40})
        service.ready_for_next_round(ROOM_ID, "p1")

        scheduler.advance(60)

        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.IN_PROGRESS
        assert room.current_round_number == 2

    def test_next_round_delay(self, make_service, scheduler, seat):
        service = make_service(resale_enabled=False, next_round_delay=5)
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        play_round(service, {"p1": 50, "p2": 40})
        service.ready_for_next_round(ROOM_ID, "p1")
        service.ready_for_next_round(ROOM_ID, "p2")

        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.ROUND_OVER
        with pytest.raises(NotReadyPhase):
            service.ready_for_next_round(ROOM_ID, "p1")

        scheduler.advance(5)
        assert room.state == RoomState.IN_PROGRESS
        assert room.current_round_number == 2

    def test_ready_outside_ready_phase(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        with pytest.raises(NotReadyPhase):
            service.ready_for_next_round(ROOM_ID, "p1")


class TestResaleFlow:

    def _settle_first_round(self, service, count, bids):
        seat_ids = [f"p{i}" for i in range(1, count + 1)]
        for i, cid in enumerate(seat_ids, start=1):
            service.join_room(ROOM_ID, cid, f"玩家{i}")
        service.start_game(ROOM_ID, "p1")
        play_round(service, bids)
        return service.rooms.get(ROOM_ID)

    def test_successful_resale(self, service, publisher):
        room = self._settle_first_round(service, 3, {"p1": 120, "p2": 100, "p3": 50})
        true_value = room.current_round.true_value

        assert room.state == RoomState.RESALE_OFFER
        [offered] = publisher.of_type("resale_offered")
        assert offered["data"]["seller_id"] == "p1"

        with pytest.raises(NotSeller):
            service.resale_decision(ROOM_ID, "p2", True)
        service.resale_decision(ROOM_ID, "p1", True)
        assert room.state == RoomState.RESALE_BIDDING

        with pytest.raises(NotSeller):
            service.submit_resale_bid(ROOM_ID, "p1", 10)
        service.submit_resale_bid(ROOM_ID, "p2", 150)
        service.submit_resale_bid(ROOM_ID, "p3", 130)

        assert room.state == RoomState.ROUND_OVER
        [settled] = publisher.of_type("resale_settled")
        assert settled["data"]["success"]
        assert settled["data"]["buyer_id"] == "p2"
        assert settled["data"]["resale_payment"] == 130.0
        assert room.get_player("p1").total_payoff == pytest.approx(30.0)
        assert room.get_player("p2").total_payoff == pytest.approx(true_value - 130.0)
        assert room.current_round.resale_outcome.success

    def test_declined_resale_goes_to_ready_check(self, service, publisher):
        room = self._settle_first_round(service, 2, {"p1": 80, "p2": 20})
        service.resale_decision(ROOM_ID, "p1", False)

        assert room.state == RoomState.ROUND_OVER
        assert publisher.of_type("awaiting_ready")
        assert not publisher.of_type("resale_opened")

    def test_decision_timeout_counts_as_no(self, service, scheduler):
        room = self._settle_first_round(service, 2, {"p1": 80, "p2": 20})
        payoff = room.get_player("p1").total_payoff

        scheduler.advance(20)

        assert room.state == RoomState.ROUND_OVER
        assert room.get_player("p1").total_payoff == payoff
        with pytest.raises(ResaleNotActive):
            service.resale_decision(ROOM_ID, "p1", True)

    def test_resale_bid_timeout_with_too_few_bids(self, service, scheduler, publisher):
        room = self._settle_first_round(service, 3, {"p1": 120, "p2": 100, "p3": 50})
        payoff = room.get_player("p1").total_payoff
        service.resale_decision(ROOM_ID, "p1", True)
        service.submit_resale_bid(ROOM_ID, "p2", 70)

        scheduler.advance(30)

        [settled] = publisher.of_type("resale_settled")
        assert not settled["data"]["success"]
        assert settled["data"]["reason"] == "insufficient_bids"
        assert room.get_player("p1").total_payoff == payoff
        assert room.state == RoomState.ROUND_OVER

    def test_seller_leaving_cancels_resale(self, service, publisher):
        room = self._settle_first_round(service, 4, {"p1": 120, "p2": 100, "p3": 50, "p4": 10})
        service.resale_decision(ROOM_ID, "p1", True)
        service.submit_resale_bid(ROOM_ID, "p2", 70)

        service.leave_room(ROOM_ID, "p1")

        [settled] = publisher.of_type("resale_settled")
        assert settled["data"]["reason"] == "seller_left"
        assert room.state == RoomState.ROUND_OVER
        assert room.host_id == "p2"
        assert room.get_player("p2").total_payoff == 0.0

    def test_bidder_leaving_completes_resale(self, service, publisher):
        room = self._settle_first_round(service, 4, {"p1": 120, "p2": 100, "p3": 50, "p4": 10})
        service.resale_decision(ROOM_ID, "p1", True)
        service.submit_resale_bid(ROOM_ID, "p2", 90)
        service.submit_resale_bid(ROOM_ID, "p3", 110)

        service.leave_room(ROOM_ID, "p4")

        [settled] = publisher.of_type("resale_settled")
        assert settled["data"]["buyer_id"] == "p3"
        assert settled["data"]["resale_payment"] == 90.0
        assert room.state == RoomState.ROUND_OVER

    def test_resale_bid_in_wrong_phase(self, service):
        self._settle_first_round(service, 2, {"p1": 80, "p2": 20})
        with pytest.raises(ResaleNotActive):
            service.submit_resale_bid(ROOM_ID, "p2", 50)


class TestDepartures:

    def test_quorum_lost_finishes_exactly_once(self, service, scheduler, publisher, seat):
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")

        service.leave_room(ROOM_ID, "p3")
        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.IN_PROGRESS

        service.leave_room(ROOM_ID, "p2")
        service.leave_room(ROOM_ID, "p2")
        service.join_room(ROOM_ID, "s1", "")
        service.leave_room(ROOM_ID, "s1")

        finished = publisher.of_type("game_finished")
        assert len(finished) == 1
        assert finished[0]["data"]["reason"] == "quorum_lost"
        assert room.state == RoomState.FINISHED
        assert scheduler.pending == []
        # 提前结束时不公布真实价值
        assert not publisher.of_type("round_settled")

        service.leave_room(ROOM_ID, "p1")
        assert service.rooms.get(ROOM_ID) is None

    def test_departure_completes_bidding(self, make_service, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        service.submit_bid(ROOM_ID, "p3", 99)
        service.submit_bid(ROOM_ID, "p1", 40)

        service.leave_room(ROOM_ID, "p3")
        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.IN_PROGRESS

        service.submit_bid(ROOM_ID, "p2", 30)
        assert room.state == RoomState.ROUND_OVER
        assert "p3" not in room.current_round.bids
        assert room.current_round.winner_info.winner_id == "p1"

    def test_departure_completes_ready_check(self, make_service, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        play_round(service, {"p1": 10, "p2": 20, "p3": 30})
        service.ready_for_next_round(ROOM_ID, "p1")
        service.ready_for_next_round(ROOM_ID, "p2")

        service.leave_room(ROOM_ID, "p3")

        room = service.rooms.get(ROOM_ID)
        assert room.state == RoomState.IN_PROGRESS
        assert room.current_round_number == 2

    def test_shutdown_cancels_timers(self, service, scheduler, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        assert scheduler.pending

        service.shutdown()
        assert scheduler.pending == []


class TestSnapshots:

    def test_snapshot_hides_other_signals_and_value(self, service, seat):
        seat(service, ROOM_ID, 3)
        service.start_game(ROOM_ID, "p1")
        room = service.rooms.get(ROOM_ID)
        signals = room.current_round.signals

        snapshot = service.get_snapshot(ROOM_ID, "p1")
        dumped = snapshot.model_dump_json()

        assert snapshot.viewer.private_signal == signals["p1"]
        assert snapshot.viewer.awaiting_bid
        assert snapshot.last_settlement is None
        assert str(signals["p2"]) not in dumped
        assert str(signals["p3"]) not in dumped
        assert str(room.current_round.true_value) not in dumped

        service.submit_bid(ROOM_ID, "p1", 50)
        assert not service.get_snapshot(ROOM_ID, "p1").viewer.awaiting_bid

    def test_public_snapshot_has_no_viewer(self, service, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        snapshot = service.get_snapshot(ROOM_ID)
        assert snapshot.viewer is None
        assert snapshot.state == RoomState.IN_PROGRESS
        assert snapshot.phase_deadline is not None

    def test_spectator_joining_mid_game_gets_snapshot(self, service, publisher, seat):
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")

        service.join_room(ROOM_ID, "s1", None)

        [joined] = [m for m in publisher.messages_for("s1") if m["type"] == "joined"]
        snapshot = joined["data"]["snapshot"]
        assert snapshot["state"] == "in_progress"
        assert snapshot["current_round_number"] == 1
        assert snapshot["viewer"]["is_spectator"]
        assert snapshot["viewer"]["private_signal"] is None
        assert not snapshot["viewer"]["awaiting_bid"]

    def test_snapshot_after_settlement_reveals_value(self, make_service, seat):
        service = make_service(resale_enabled=False)
        seat(service, ROOM_ID, 2)
        service.start_game(ROOM_ID, "p1")
        play_round(service, {"p1": 70, "p2": 20})

        snapshot = service.get_snapshot(ROOM_ID, "p2")
        room = service.rooms.get(ROOM_ID)
        assert snapshot.last_settlement.true_value == room.current_round.true_value
        assert snapshot.state == RoomState.ROUND_OVER

    def test_connect_and_state_query_are_unicast(self, service, publisher, seat):
        service.connect(ROOM_ID, "c0")
        [connected] = publisher.items_of_type("connected")
        assert connected.target == CONNECTION
        assert connected.message["data"]["snapshot"] is None

        seat(service, ROOM_ID, 2)
        service.send_state(ROOM_ID, "p2")
        [state] = publisher.items_of_type("game_state")
        assert state.target == CONNECTION and state.key == "p2"
        assert state.message["data"]["viewer"]["player_id"] == "p2"

        assert all(item.target in (CONNECTION, ROOM) for item in publisher.items)

    def test_list_rooms(self, service, seat):
        seat(service, ROOM_ID, 2)
        [summary] = service.list_rooms()
        assert summary.id == ROOM_ID
        assert summary.player_count == 2

"""
Auction game service
拍卖房间状态机 - 校验玩家动作、推进阶段、管理计时器并产生出站消息

所有转换都是同步执行的：从接受一条消息到该转换的全部通知入队之间不会让出事件循环，
因此房间数据不需要加锁。计时器回调在执行前重新检查房间状态和轮次。
"""

import random
import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from cvauction.core.config import settings
from cvauction.core.exceptions import (
    AuctionError, RoomNotFound, NotInRoom, SpectatorAction, GameFinished,
    GameAlreadyStarted, NotHost, PlayerCountOutOfRange, RoundNotActive,
    ResaleNotActive, NotSeller, NotReadyPhase
)
from cvauction.models.player import Player
from cvauction.models.room import (
    Room, BiddingPhase, ResaleOfferPhase, ResaleBiddingPhase, ReadyCheckPhase, FinishedPhase
)
from cvauction.schemas.game import (
    AuctionConfig, FinishReason, GameSnapshot, ResaleOutcome, RoomState,
    RoomSummary, RoundSettlement, ViewerInfo
)
from cvauction.services.outbox import Outbox
from cvauction.services.registry import PlayerRegistry
from cvauction.services.resale import ResaleAuction
from cvauction.services.room_registry import RoomRegistry
from cvauction.services.round_engine import RoundEngine
from cvauction.services.timers import AsyncioScheduler, PhaseTimer

logger = logging.getLogger(__name__)

# 游戏开始后继续进行所需的最少玩家数
QUORUM = 2

# 快照中附带的最近日志条数
SNAPSHOT_LOG_SIZE = 50


def _deadline(seconds: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AuctionGameService:
    """拍卖游戏服务"""

    def __init__(
        self,
        rooms: RoomRegistry,
        publish: Callable[[Outbox], None],
        scheduler=None,
        rng: Optional[random.Random] = None
    ):
        self.rooms = rooms
        self.publish = publish
        self.scheduler = scheduler or AsyncioScheduler()
        self.rng = rng or random.Random()
        self.players = PlayerRegistry()
        self.engine = RoundEngine(self.rng)
        self.resale = ResaleAuction(self.rng)

    # ------------------------------------------------------------------
    # 玩家动作
    # ------------------------------------------------------------------

    def connect(self, room_id: str, connection_id: str) -> None:
        """新连接建立：发送连接ID和（若房间已存在）当前快照"""
        outbox = Outbox(room_id)
        room = self.rooms.get(room_id)
        snapshot = self._snapshot(room, connection_id).model_dump(mode="json") if room else None
        outbox.send(connection_id, "connected", {
            "connection_id": connection_id,
            "room_id": room_id,
            "snapshot": snapshot
        })
        self.publish(outbox)

    def join_room(self, room_id: str, connection_id: str, name: Optional[str]) -> Player:
        room = self.rooms.get_or_create(room_id)
        try:
            player = self.players.join(room, connection_id, name)
        except AuctionError:
            if room.is_empty:
                self.rooms.remove(room.id)
            raise

        outbox = Outbox(room.id)
        outbox.send(connection_id, "joined", {
            "player_id": player.id,
            "name": player.name,
            "is_host": player.is_host,
            "is_spectator": player.is_spectator,
            "snapshot": self._snapshot(room, connection_id).model_dump(mode="json")
        })
        if player.is_spectator:
            self._log(room, outbox, f"{player.name} 以观众身份进入房间")
        else:
            self._log(room, outbox, f"{player.name} 加入了房间")
        outbox.broadcast("player_list_updated", self._player_list(room))

        self.publish(outbox)
        return player

    def leave_room(self, room_id: str, connection_id: str) -> None:
        """连接断开或主动离开"""
        room = self.rooms.get(room_id)
        if not room:
            return

        result = self.players.leave(room, connection_id)
        player = result.player
        if player is None:
            return

        if room.is_empty:
            self.rooms.remove(room.id)
            return

        outbox = Outbox(room.id)
        self._log(room, outbox, f"{player.name} 离开了房间")

        if result.new_host:
            outbox.broadcast("host_changed", {
                "host_id": result.new_host.id,
                "host_name": result.new_host.name
            })
            self._log(room, outbox, f"{result.new_host.name} 成为新的房主")

        outbox.broadcast("player_list_updated", self._player_list(room))

        if room.is_playing and not player.is_spectator:
            if len(room.participants) < QUORUM:
                self._finish(room, outbox, FinishReason.QUORUM_LOST)
            else:
                self._handle_departure(room, outbox, player)

        self.publish(outbox)

    def start_game(self, room_id: str, connection_id: str) -> None:
        room = self._room_for(room_id)
        player = self._member(room, connection_id)

        if room.state == RoomState.FINISHED:
            raise GameFinished("游戏已经结束")
        if room.state != RoomState.WAITING:
            raise GameAlreadyStarted("游戏已经开始")
        if player.id != room.host_id:
            raise NotHost("只有房主可以开始游戏")

        config = room.config
        count = len(room.participants)
        if count < config.min_players or count > config.max_players:
            raise PlayerCountOutOfRange(
                f"需要 {config.min_players}-{config.max_players} 名玩家才能开始游戏，当前 {count} 名"
            )

        room.total_rounds = count
        outbox = Outbox(room.id)
        self._log(room, outbox, f"游戏开始，共 {count} 名玩家，{count} 轮")
        logger.info(f"Room {room.id}: game started by {player.name} with {count} players")

        self._begin_round(room, outbox)
        self.publish(outbox)

    def submit_bid(self, room_id: str, connection_id: str, amount: Any) -> None:
        room = self._room_for(room_id)
        player = self._participant(room, connection_id)

        if room.state == RoomState.FINISHED:
            raise GameFinished("游戏已经结束")
        if room.state != RoomState.IN_PROGRESS:
            raise RoundNotActive("当前不在出价阶段")

        value = self.engine.validate_bid(room, amount)
        all_in = self.engine.record_bid(room, player, value)

        outbox = Outbox(room.id)
        outbox.send(connection_id, "bid_accepted", {
            "round_number": room.current_round_number,
            "amount": value,
            "resale": False
        })
        outbox.broadcast("player_has_bid", {
            "player_id": player.id,
            "player_name": player.name
        }, exclude=connection_id)
        self._log(room, outbox, f"{player.name} 已出价")

        if all_in:
            self._log(room, outbox, "所有玩家已出价")
            self._settle_round(room, outbox)

        self.publish(outbox)

    def resale_decision(self, room_id: str, connection_id: str, accept: bool) -> None:
        room = self._room_for(room_id)
        player = self._participant(room, connection_id)

        if room.state == RoomState.FINISHED:
            raise GameFinished("游戏已经结束")
        if room.state != RoomState.RESALE_OFFER:
            raise ResaleNotActive("当前没有待决定的转售")

        phase = room.phase
        if player.id != phase.seller_id:
            raise NotSeller("只有本轮获胜者可以决定是否转售")

        outbox = Outbox(room.id)
        if accept:
            self._open_resale(room, outbox, phase.settlement)
        else:
            self._log(room, outbox, f"{player.name} 选择不转售")
            self._enter_ready_check(room, outbox)
        self.publish(outbox)

    def submit_resale_bid(self, room_id: str, connection_id: str, amount: Any) -> None:
        room = self._room_for(room_id)
        player = self._participant(room, connection_id)

        if room.state == RoomState.FINISHED:
            raise GameFinished("游戏已经结束")
        if room.state != RoomState.RESALE_BIDDING:
            raise ResaleNotActive("当前不在转售出价阶段")

        value = self.resale.validate_bid(amount)
        all_in = self.resale.record_bid(room.phase.resale, player, value)

        outbox = Outbox(room.id)
        outbox.send(connection_id, "bid_accepted", {
            "round_number": room.current_round_number,
            "amount": value,
            "resale": True
        })
        outbox.broadcast("player_has_resale_bid", {
            "player_id": player.id,
            "player_name": player.name
        }, exclude=connection_id)
        self._log(room, outbox, f"{player.name} 已提交转售出价")

        if all_in:
            self._resolve_resale(room, outbox)

        self.publish(outbox)

    def ready_for_next_round(self, room_id: str, connection_id: str) -> None:
        room = self._room_for(room_id)
        player = self._participant(room, connection_id)

        if room.state == RoomState.FINISHED:
            raise GameFinished("游戏已经结束")
        if room.state != RoomState.ROUND_OVER:
            raise NotReadyPhase("当前不在准备阶段")

        phase = room.phase
        if phase.advancing:
            raise NotReadyPhase("即将进入下一轮")
        if player.id in phase.ready:
            return

        phase.ready.add(player.id)
        outbox = Outbox(room.id)
        outbox.broadcast("ready_updated", self._ready_status(room))
        self._check_all_ready(room, outbox)
        self.publish(outbox)

    def send_state(self, room_id: str, connection_id: str) -> None:
        """只读状态查询，单播快照"""
        room = self._room_for(room_id)
        outbox = Outbox(room.id)
        outbox.send(connection_id, "game_state", self._snapshot(room, connection_id).model_dump(mode="json"))
        self.publish(outbox)

    def get_snapshot(self, room_id: str, connection_id: Optional[str] = None) -> GameSnapshot:
        return self._snapshot(self._room_for(room_id), connection_id)

    def list_rooms(self) -> List[RoomSummary]:
        return self.rooms.list_rooms()

    def shutdown(self) -> None:
        """停止服务时作废所有计时器"""
        for room in list(self.rooms.rooms.values()):
            room.cancel_timer()
        logger.info(f"Game service shut down, {len(self.rooms)} rooms dropped")

    # ------------------------------------------------------------------
    # 阶段转换
    # ------------------------------------------------------------------

    def _begin_round(self, room: Room, outbox: Outbox) -> None:
        round_ = self.engine.start_round(room)
        if round_ is None:
            self._finish(room, outbox, FinishReason.COMPLETED)
            return

        config = room.config
        room.transition(RoomState.IN_PROGRESS, BiddingPhase(round_.deadline))
        room.set_timer(PhaseTimer(
            self.scheduler, config.round_time_limit, self._on_bid_deadline, room.id, round_.number,
            label=f"{room.id}:bid:{round_.number}"
        ))

        outbox.broadcast("round_started", {
            "round_number": round_.number,
            "total_rounds": room.total_rounds,
            "deadline": _iso(round_.deadline),
            "time_limit": config.round_time_limit,
            "bid_ceiling": config.bid_ceiling,
            "pricing_rule": config.pricing_rule.value,
            "totals": room.totals()
        })

        # 私有信号只发给本人
        for player_id, signal in round_.signals.items():
            outbox.send(player_id, "private_signal", {
                "round_number": round_.number,
                "value": signal
            })

        self._log(room, outbox, f"第 {round_.number}/{room.total_rounds} 轮开始，请在 {config.round_time_limit:g} 秒内出价")

    def _settle_round(self, room: Room, outbox: Outbox) -> None:
        settlement = self.engine.settle(room)
        if settlement is None:
            return
        room.cancel_timer()

        outbox.broadcast("round_settled", settlement.model_dump(mode="json"))
        self._log_settlement(room, outbox, settlement)

        winner = room.get_player(settlement.winner_id)
        others = [p for p in room.participants if p.id != settlement.winner_id]
        if room.config.resale_enabled and winner and others:
            self._offer_resale(room, outbox, settlement)
        else:
            self._enter_ready_check(room, outbox)

    def _offer_resale(self, room: Room, outbox: Outbox, settlement: RoundSettlement) -> None:
        limit = room.config.resale_decision_time_limit
        deadline = _deadline(limit)
        room.transition(RoomState.RESALE_OFFER, ResaleOfferPhase(settlement, deadline))
        room.set_timer(PhaseTimer(
            self.scheduler, limit, self._on_resale_decision_timeout, room.id, settlement.round_number,
            label=f"{room.id}:resale_offer:{settlement.round_number}"
        ))

        outbox.broadcast("resale_offered", {
            "round_number": settlement.round_number,
            "seller_id": settlement.winner_id,
            "seller_name": settlement.winner_name,
            "deadline": _iso(deadline),
            "time_limit": limit
        })
        self._log(room, outbox, f"等待 {settlement.winner_name} 决定是否转售")

    def _open_resale(self, room: Room, outbox: Outbox, settlement: RoundSettlement) -> None:
        resale = self.resale.open(room, settlement)
        limit = room.config.resale_bid_time_limit
        deadline = _deadline(limit)
        room.transition(RoomState.RESALE_BIDDING, ResaleBiddingPhase(settlement, resale, deadline))
        room.set_timer(PhaseTimer(
            self.scheduler, limit, self._on_resale_bid_deadline, room.id, settlement.round_number,
            label=f"{room.id}:resale_bid:{settlement.round_number}"
        ))

        outbox.broadcast("resale_opened", {
            "round_number": settlement.round_number,
            "seller_id": settlement.winner_id,
            "seller_name": settlement.winner_name,
            "bidder_ids": list(resale.bidder_ids),
            "deadline": _iso(deadline),
            "time_limit": limit
        })
        self._log(room, outbox, f"{settlement.winner_name} 选择转售，其他玩家请提交转售出价")

    def _resolve_resale(self, room: Room, outbox: Outbox) -> None:
        phase = room.phase
        room.cancel_timer()
        outcome = self.resale.resolve(room, phase.settlement, phase.resale)
        self._announce_resale(room, outbox, outcome)
        self._enter_ready_check(room, outbox)

    def _abort_resale(self, room: Room, outbox: Outbox) -> None:
        phase = room.phase
        room.cancel_timer()
        resale = phase.resale if isinstance(phase, ResaleBiddingPhase) else None
        outcome = self.resale.abort(room, phase.settlement, "seller_left", resale)
        self._announce_resale(room, outbox, outcome)
        self._enter_ready_check(room, outbox)

    def _announce_resale(self, room: Room, outbox: Outbox, outcome: ResaleOutcome) -> None:
        if room.current_round:
            room.current_round.resale_outcome = outcome
        outbox.broadcast("resale_settled", outcome.model_dump(mode="json"))

        if outcome.success:
            true_value = room.current_round.true_value
            self._log(
                room, outbox,
                f"转售成功：{outcome.buyer_name} 以 {outcome.resale_payment:.2f} 购得，"
                f"收益 {true_value:.2f} - {outcome.resale_payment:.2f} = {outcome.buyer_payoff:.2f}；"
                f"{outcome.seller_name} 本轮最终收益 {outcome.resale_payment:.2f} - "
                f"{outcome.original_payment:.2f} = {outcome.seller_round_payoff:.2f}"
            )
        elif outcome.reason == "seller_left":
            self._log(room, outbox, f"{outcome.seller_name} 已离开，转售取消")
        else:
            self._log(room, outbox, f"有效转售出价不足 2 个，转售失败，{outcome.seller_name} 保留物品")

    def _enter_ready_check(self, room: Room, outbox: Outbox) -> None:
        limit = room.config.ready_time_limit
        deadline = _deadline(limit)
        room.transition(RoomState.ROUND_OVER, ReadyCheckPhase(deadline))
        room.set_timer(PhaseTimer(
            self.scheduler, limit, self._on_ready_timeout, room.id, room.current_round_number,
            label=f"{room.id}:ready:{room.current_round_number}"
        ))

        outbox.broadcast("awaiting_ready", {
            "round_number": room.current_round_number,
            "total_rounds": room.total_rounds,
            "is_last_round": room.current_round_number >= room.total_rounds,
            "deadline": _iso(deadline),
            "time_limit": limit,
            "totals": room.totals()
        })

    def _check_all_ready(self, room: Room, outbox: Outbox) -> None:
        phase = room.phase
        if phase.advancing:
            return
        if all(p.id in phase.ready for p in room.participants):
            self._advance(room, outbox)

    def _advance(self, room: Room, outbox: Outbox) -> None:
        room.phase.advancing = True
        room.cancel_timer()

        delay = room.config.next_round_delay
        if delay > 0:
            room.set_timer(PhaseTimer(
                self.scheduler, delay, self._on_next_round, room.id, room.current_round_number,
                label=f"{room.id}:next:{room.current_round_number}"
            ))
        else:
            self._proceed(room, outbox)

    def _proceed(self, room: Room, outbox: Outbox) -> None:
        if room.current_round_number >= room.total_rounds:
            self._finish(room, outbox, FinishReason.COMPLETED)
        else:
            self._begin_round(room, outbox)

    def _finish(self, room: Room, outbox: Outbox, reason: FinishReason) -> None:
        """进入终态；已结束的房间不会再次结束"""
        if room.state == RoomState.FINISHED:
            return

        room.cancel_timer()
        ranking = room.ranking()
        room.transition(RoomState.FINISHED, FinishedPhase(reason, ranking))

        outbox.broadcast("game_finished", {
            "reason": reason.value,
            "rounds_played": room.current_round_number,
            "total_rounds": room.total_rounds,
            "ranking": [entry.model_dump(mode="json") for entry in ranking]
        })

        if reason == FinishReason.QUORUM_LOST:
            logger.warning(f"Room {room.id}: quorum lost, game finished early")
            self._log(room, outbox, f"玩家人数不足 {QUORUM} 人，游戏提前结束")
        else:
            logger.info(f"Room {room.id}: game finished after {room.current_round_number} rounds")
            self._log(room, outbox, "游戏结束")

        for entry in ranking:
            self._log(room, outbox, f"第 {entry.rank} 名：{entry.name}，总收益 {entry.total_payoff:.2f}")

    def _handle_departure(self, room: Room, outbox: Outbox, player: Player) -> None:
        """游戏进行中有玩家离开：重新判断当前阶段是否已经完成"""
        state = room.state
        phase = room.phase

        if state == RoomState.IN_PROGRESS:
            self.engine.withdraw_bid(room, player.id)
            if self.engine.all_bids_in(room):
                self._settle_round(room, outbox)

        elif state == RoomState.RESALE_OFFER:
            if phase.seller_id == player.id:
                self._abort_resale(room, outbox)

        elif state == RoomState.RESALE_BIDDING:
            if phase.resale.seller_id == player.id:
                self._abort_resale(room, outbox)
            else:
                phase.resale.withdraw(player.id)
                if phase.resale.all_bids_in():
                    self._resolve_resale(room, outbox)

        elif state == RoomState.ROUND_OVER:
            phase.ready.discard(player.id)
            outbox.broadcast("ready_updated", self._ready_status(room))
            self._check_all_ready(room, outbox)

    # ------------------------------------------------------------------
    # 计时器回调
    # ------------------------------------------------------------------

    def _current_room(self, room_id: str, state: RoomState, round_number: int, label: str) -> Optional[Room]:
        """计时器到期时确认房间仍处于它所守护的阶段"""
        room = self.rooms.get(room_id)
        if not room or room.state != state or room.current_round_number != round_number:
            logger.debug(f"Timer {label} for room {room_id} round {round_number} is stale, ignoring")
            return None
        return room

    def _on_bid_deadline(self, room_id: str, round_number: int) -> None:
        room = self._current_room(room_id, RoomState.IN_PROGRESS, round_number, "bid")
        if not room:
            return
        outbox = Outbox(room.id)
        self._log(room, outbox, "出价时间到，未出价的玩家按 0 计")
        self._settle_round(room, outbox)
        self.publish(outbox)

    def _on_resale_decision_timeout(self, room_id: str, round_number: int) -> None:
        room = self._current_room(room_id, RoomState.RESALE_OFFER, round_number, "resale_offer")
        if not room:
            return
        outbox = Outbox(room.id)
        self._log(room, outbox, f"{room.phase.settlement.winner_name} 未在规定时间内决定，视为不转售")
        self._enter_ready_check(room, outbox)
        self.publish(outbox)

    def _on_resale_bid_deadline(self, room_id: str, round_number: int) -> None:
        room = self._current_room(room_id, RoomState.RESALE_BIDDING, round_number, "resale_bid")
        if not room:
            return
        outbox = Outbox(room.id)
        self._log(room, outbox, "转售出价时间到")
        self._resolve_resale(room, outbox)
        self.publish(outbox)

    def _on_ready_timeout(self, room_id: str, round_number: int) -> None:
        room = self._current_room(room_id, RoomState.ROUND_OVER, round_number, "ready")
        if not room or room.phase.advancing:
            return
        outbox = Outbox(room.id)
        self._log(room, outbox, "准备时间到，未确认的玩家视为已准备")
        self._advance(room, outbox)
        self.publish(outbox)

    def _on_next_round(self, room_id: str, round_number: int) -> None:
        room = self._current_room(room_id, RoomState.ROUND_OVER, round_number, "next")
        if not room or not room.phase.advancing:
            return
        outbox = Outbox(room.id)
        self._proceed(room, outbox)
        self.publish(outbox)

    # ------------------------------------------------------------------
    # 查询与辅助
    # ------------------------------------------------------------------

    def _room_for(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if not room:
            raise RoomNotFound(f"房间 {room_id} 不存在")
        return room

    def _member(self, room: Room, connection_id: str) -> Player:
        player = room.get_player(connection_id)
        if not player:
            raise NotInRoom("您还没有加入该房间")
        return player

    def _participant(self, room: Room, connection_id: str) -> Player:
        player = self._member(room, connection_id)
        if player.is_spectator:
            raise SpectatorAction("观众不能参与出价")
        return player

    def _log(self, room: Room, outbox: Outbox, text: str) -> None:
        entry = f"[轮次 {room.current_round_number}] {text}"
        room.log.append(entry)
        outbox.broadcast("log", {"text": entry})
        logger.debug(f"Room {room.id} log: {entry}")

    def _log_settlement(self, room: Room, outbox: Outbox, settlement: RoundSettlement) -> None:
        second = settlement.second_highest_bid
        second_text = f"{second:.2f}" if second is not None else "无"
        self._log(
            room, outbox,
            f"本轮结束，真实价值为 {settlement.true_value:.2f}；"
            f"最高出价 {settlement.highest_bid:.2f}，第二高出价 {second_text}"
        )
        if settlement.tie_break:
            self._log(room, outbox, f"{len(settlement.tied_player_ids)} 名玩家并列最高价，随机决定获胜者")
        self._log(
            room, outbox,
            f"{settlement.winner_name} 获胜，支付 {settlement.payment:.2f}，"
            f"收益 {settlement.true_value:.2f} - {settlement.payment:.2f} = {settlement.payoff:.2f}"
        )

    def _player_list(self, room: Room) -> Dict[str, Any]:
        return {
            "host_id": room.host_id,
            "players": [p.to_public().model_dump(mode="json") for p in room.players]
        }

    def _ready_status(self, room: Room) -> Dict[str, Any]:
        phase = room.phase
        return {
            "round_number": room.current_round_number,
            "ready_player_ids": [p.id for p in room.participants if p.id in phase.ready],
            "required": len(room.participants)
        }

    def _snapshot(self, room: Room, viewer_id: Optional[str] = None) -> GameSnapshot:
        """当前阶段的快照，不含他人信号，也不含尚未公开的真实价值"""
        state = room.state
        phase = room.phase
        round_ = room.current_round

        resale_seller_id = None
        if state == RoomState.RESALE_OFFER:
            resale_seller_id = phase.seller_id
        elif state == RoomState.RESALE_BIDDING:
            resale_seller_id = phase.resale.seller_id

        return GameSnapshot(
            room_id=room.id,
            state=state,
            host_id=room.host_id,
            players=[p.to_public() for p in room.players],
            current_round_number=room.current_round_number,
            total_rounds=room.total_rounds,
            phase_deadline=getattr(phase, "deadline", None),
            pricing_rule=room.config.pricing_rule,
            resale_enabled=room.config.resale_enabled,
            bid_ceiling=room.config.bid_ceiling,
            viewer=self._viewer_info(room, viewer_id),
            last_settlement=round_.winner_info if round_ else None,
            resale_seller_id=resale_seller_id,
            resale_outcome=round_.resale_outcome if round_ else None,
            ready_player_ids=sorted(phase.ready) if state == RoomState.ROUND_OVER else [],
            finish_reason=phase.reason if state == RoomState.FINISHED else None,
            ranking=phase.ranking if state == RoomState.FINISHED else [],
            log=room.log[-SNAPSHOT_LOG_SIZE:]
        )

    def _viewer_info(self, room: Room, viewer_id: Optional[str]) -> Optional[ViewerInfo]:
        player = room.get_player(viewer_id) if viewer_id else None
        if not player:
            return None

        state = room.state
        phase = room.phase
        round_ = room.current_round

        signal = None
        if round_ and not player.is_spectator:
            signal = round_.signal_for(player.id)

        return ViewerInfo(
            player_id=player.id,
            is_spectator=player.is_spectator,
            is_host=player.is_host,
            private_signal=signal,
            has_bid=player.has_bid,
            awaiting_bid=(
                state == RoomState.IN_PROGRESS and not player.is_spectator
                and not player.has_bid and round_ is not None and player.id in round_.signals
            ),
            can_decide_resale=state == RoomState.RESALE_OFFER and phase.seller_id == player.id,
            awaiting_resale_bid=(
                state == RoomState.RESALE_BIDDING and player.id in phase.resale.bidder_ids
                and not phase.resale.has_bid(player.id)
            ),
            is_ready=state == RoomState.ROUND_OVER and player.id in phase.ready
        )


_game_service: Optional[AuctionGameService] = None


def default_auction_config() -> AuctionConfig:
    return AuctionConfig.from_settings(settings)


def get_game_service() -> AuctionGameService:
    """获取全局拍卖游戏服务实例"""
    global _game_service
    if _game_service is None:
        from cvauction.websocket.notifier import notifier
        _game_service = AuctionGameService(
            RoomRegistry(settings.MAX_ROOMS, default_auction_config),
            notifier.publish
        )
    return _game_service

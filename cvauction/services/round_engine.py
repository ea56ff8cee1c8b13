"""
Round engine
拍卖轮次引擎 - 抽取真实价值与私有信号、收集出价、结算

引擎不直接与客户端通信，只修改房间模型并返回结构化结果，
由状态机负责广播。
"""

import math
import random
import logging
from typing import Any, Optional
from datetime import datetime, timedelta, timezone

from cvauction.core.exceptions import InvalidBid, RoundNotActive, DuplicateBid
from cvauction.models.player import Player
from cvauction.models.room import Room
from cvauction.models.round import Round
from cvauction.schemas.game import BidEntry, RoundSettlement
from cvauction.services.pricing import run_sealed_bid_auction

logger = logging.getLogger(__name__)


def validate_amount(amount: Any, ceiling: Optional[float] = None) -> float:
    """出价必须是有限数字，且在 [0, ceiling] 内（ceiling 为空表示无上限）"""
    # JSON 中的 true 和 "75" 都不算数字
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidBid("出价必须是数字")
    value = float(amount)

    if not math.isfinite(value) or value < 0:
        raise InvalidBid("出价必须是非负的有限数字")
    if ceiling is not None and value > ceiling:
        raise InvalidBid(f"出价必须在 0 到 {ceiling:g} 之间")
    return value


class RoundEngine:
    """轮次引擎"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def start_round(self, room: Room) -> Optional[Round]:
        """
        开始新一轮
        超过总轮数时不做任何事并返回 None，由调用方结束游戏
        """
        next_number = room.current_round_number + 1
        if next_number > room.total_rounds:
            logger.warning(f"Room {room.id}: round {next_number} exceeds total rounds {room.total_rounds}")
            return None

        config = room.config
        true_value = self.rng.uniform(config.true_value_min, config.true_value_max)

        # 每位玩家独立抽取信号误差
        signals = {
            player.id: true_value + self.rng.uniform(-config.signal_noise, config.signal_noise)
            for player in room.participants
        }

        for player in room.players:
            player.current_bid = None

        round_ = Round(next_number, true_value, signals)
        round_.deadline = datetime.now(timezone.utc) + timedelta(seconds=config.round_time_limit)

        room.current_round_number = next_number
        room.current_round = round_
        room.rounds.append(round_)

        logger.info(f"Room {room.id}: round {next_number}/{room.total_rounds} started with {len(signals)} bidders")
        return round_

    def validate_bid(self, room: Room, amount: Any) -> float:
        return validate_amount(amount, room.config.bid_ceiling)

    def record_bid(self, room: Room, player: Player, amount: float) -> bool:
        """
        记录出价，返回是否所有玩家都已出价
        每轮每位玩家只能出价一次
        """
        round_ = room.current_round
        if round_ is None or round_.is_settled:
            raise RoundNotActive("当前不在出价阶段")

        if player.has_bid or player.id in round_.bids:
            raise DuplicateBid("本轮已经出过价")

        player.current_bid = amount
        round_.bids[player.id] = amount
        return self.all_bids_in(room)

    def all_bids_in(self, room: Room) -> bool:
        participants = room.participants
        return bool(participants) and all(p.has_bid for p in participants)

    def withdraw_bid(self, room: Room, player_id: str) -> None:
        """离开的玩家不再参与本轮"""
        if room.current_round and not room.current_round.is_settled:
            room.current_round.bids.pop(player_id, None)

    def settle(self, room: Room) -> Optional[RoundSettlement]:
        """
        结算本轮
        未出价的玩家按 0 计；每轮只结算一次，重复调用返回 None
        """
        round_ = room.current_round
        if round_ is None or round_.is_settled:
            logger.debug(f"Room {room.id}: settlement skipped, round already settled or missing")
            return None

        for player in room.participants:
            if player.id not in round_.bids:
                round_.bids[player.id] = 0.0
                player.current_bid = 0.0

        if not round_.bids:
            logger.warning(f"Room {room.id}: round {round_.number} has no bidders to settle")
            return None

        config = room.config
        outcome = run_sealed_bid_auction(round_.bids, config.pricing_rule, self.rng, config.tie_payment)

        winner = room.get_player(outcome.winner_id)
        payoff = round_.true_value - outcome.payment
        winner.add_payoff(payoff)

        settlement = RoundSettlement(
            round_number=round_.number,
            true_value=round_.true_value,
            sorted_bids=[
                BidEntry(player_id=pid, name=room.get_player(pid).name, amount=amount)
                for pid, amount in outcome.sorted_bids
            ],
            highest_bid=outcome.highest,
            second_highest_bid=outcome.second_highest,
            winner_id=winner.id,
            winner_name=winner.name,
            payment=outcome.payment,
            payoff=payoff,
            tie_break=outcome.tie_break,
            tied_player_ids=outcome.tied_ids,
            pricing_rule=config.pricing_rule,
            totals=room.totals()
        )
        round_.winner_info = settlement

        logger.info(
            f"Room {room.id}: round {round_.number} settled, winner={winner.name} "
            f"payment={outcome.payment:.2f} payoff={payoff:.2f}"
        )
        return settlement

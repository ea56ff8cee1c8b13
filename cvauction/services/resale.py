"""
Resale sub-auction
转售子拍卖 - 原获胜者把物品以第二价格密封拍卖转卖给其他玩家
"""

import random
import logging
from typing import Any, Optional

from cvauction.core.exceptions import NotSeller, ResaleNotActive, DuplicateBid
from cvauction.models.player import Player
from cvauction.models.room import Room
from cvauction.models.round import ResaleState
from cvauction.schemas.game import (
    BidEntry, PricingRule, ResaleOutcome, RoundSettlement, TiePayment
)
from cvauction.services.pricing import run_sealed_bid_auction
from cvauction.services.round_engine import validate_amount

logger = logging.getLogger(__name__)

# 转售成功至少需要的有效（正数）出价数
MIN_RESALE_BIDS = 2


class ResaleAuction:
    """转售子拍卖"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def open(self, room: Room, settlement: RoundSettlement) -> ResaleState:
        """获胜者同意转售后，在其余玩家之间开启出价"""
        bidder_ids = [p.id for p in room.participants if p.id != settlement.winner_id]
        resale = ResaleState(settlement.winner_id, bidder_ids)
        logger.info(f"Room {room.id}: resale opened by {settlement.winner_name} with {len(bidder_ids)} bidders")
        return resale

    def validate_bid(self, amount: Any) -> float:
        # 转售出价除了非负以外没有上限
        return validate_amount(amount)

    def record_bid(self, resale: ResaleState, player: Player, amount: float) -> bool:
        """记录转售出价，返回是否所有出价者都已出价"""
        if player.id == resale.seller_id:
            raise NotSeller("卖方不能参与转售出价")
        if player.id not in resale.bidder_ids:
            raise ResaleNotActive("您不在本次转售的出价者之中")
        if resale.has_bid(player.id):
            raise DuplicateBid("已经提交过转售出价")

        resale.bids[player.id] = amount
        return resale.all_bids_in()

    def resolve(self, room: Room, settlement: RoundSettlement, resale: ResaleState) -> ResaleOutcome:
        """
        结算转售
        正数出价少于 2 个时转售失败，原获胜者保留物品，收益不变；
        否则最高出价者获胜并支付第二高出价，卖方本轮收益变为 (转售价 - 原支付价)
        """
        seller = room.get_player(resale.seller_id)
        valid_bids = {
            pid: amount for pid, amount in resale.bids.items()
            if amount > 0 and room.get_player(pid)
        }

        if seller is None or len(valid_bids) < MIN_RESALE_BIDS:
            logger.info(f"Room {room.id}: resale failed with {len(valid_bids)} valid bids")
            return self._failed(room, settlement, "insufficient_bids", resale)

        outcome = run_sealed_bid_auction(valid_bids, PricingRule.SECOND_PRICE, self.rng, TiePayment.PRICING_RULE)
        buyer = room.get_player(outcome.winner_id)
        resale_payment = outcome.payment

        # 卖方：撤销原收益，换成转售差价
        seller_round_payoff = resale_payment - settlement.payment
        seller.add_payoff(-settlement.payoff)
        seller.add_payoff(seller_round_payoff)

        buyer_payoff = settlement.true_value - resale_payment
        buyer.add_payoff(buyer_payoff)

        resale.winner_id = buyer.id
        resale.payment = resale_payment

        logger.info(
            f"Room {room.id}: resale from {seller.name} to {buyer.name} at {resale_payment:.2f}, "
            f"seller payoff {seller_round_payoff:.2f}, buyer payoff {buyer_payoff:.2f}"
        )

        return ResaleOutcome(
            round_number=settlement.round_number,
            success=True,
            seller_id=seller.id,
            seller_name=seller.name,
            buyer_id=buyer.id,
            buyer_name=buyer.name,
            original_payment=settlement.payment,
            resale_payment=resale_payment,
            seller_round_payoff=seller_round_payoff,
            buyer_payoff=buyer_payoff,
            sorted_bids=self._entries(room, outcome.sorted_bids),
            tie_break=outcome.tie_break,
            totals=room.totals()
        )

    def abort(self, room: Room, settlement: RoundSettlement, reason: str,
              resale: Optional[ResaleState] = None) -> ResaleOutcome:
        """卖方离开等情况下取消转售，收益不变"""
        logger.info(f"Room {room.id}: resale aborted ({reason})")
        return self._failed(room, settlement, reason, resale)

    def _failed(self, room: Room, settlement: RoundSettlement, reason: str,
                resale: Optional[ResaleState]) -> ResaleOutcome:
        bids = []
        if resale is not None:
            bids = sorted(
                ((pid, amount) for pid, amount in resale.bids.items() if room.get_player(pid)),
                key=lambda item: item[1],
                reverse=True
            )
        return ResaleOutcome(
            round_number=settlement.round_number,
            success=False,
            reason=reason,
            seller_id=settlement.winner_id,
            seller_name=settlement.winner_name,
            original_payment=settlement.payment,
            seller_round_payoff=settlement.payoff,
            sorted_bids=self._entries(room, bids),
            totals=room.totals()
        )

    def _entries(self, room: Room, ordered):
        return [
            BidEntry(player_id=pid, name=room.get_player(pid).name, amount=amount)
            for pid, amount in ordered
        ]

"""
Pricing rules
密封出价拍卖的获胜者选择与价格规则
"""

import random
from typing import Dict, List, NamedTuple, Tuple

from cvauction.schemas.game import PricingRule, TiePayment


class AuctionOutcome(NamedTuple):
    """一次密封出价拍卖的结果"""
    winner_id: str
    payment: float
    sorted_bids: List[Tuple[str, float]]
    tied_ids: List[str]

    @property
    def highest(self) -> float:
        return self.sorted_bids[0][1]

    @property
    def second_highest(self):
        return self.sorted_bids[1][1] if len(self.sorted_bids) > 1 else None

    @property
    def tie_break(self) -> bool:
        return len(self.tied_ids) > 1


def sort_bids(bids: Dict[str, float]) -> List[Tuple[str, float]]:
    """按金额降序排序；金额相同保持提交顺序"""
    return sorted(bids.items(), key=lambda item: item[1], reverse=True)


def median_rank(n: int) -> int:
    """
    中位价格规则使用的名次（从1开始，按降序排列）
    奇数 n 取 (n+1)/2，偶数 n 取 n/2 + 1
    """
    if n < 1:
        raise ValueError("median rank needs at least one bid")
    if n % 2:
        return (n + 1) // 2
    return n // 2 + 1


def pick_winner(sorted_bids: List[Tuple[str, float]], rng: random.Random) -> Tuple[str, List[str]]:
    """最高出价者获胜；多人并列时均匀随机选择"""
    highest = sorted_bids[0][1]
    tied = [player_id for player_id, amount in sorted_bids if amount == highest]
    if len(tied) == 1:
        return tied[0], tied
    return rng.choice(tied), tied


def compute_payment(
    amounts: List[float],
    rule: PricingRule,
    tie_payment: TiePayment = TiePayment.PRICING_RULE,
    tied: bool = False
) -> float:
    """根据降序排列的出价金额计算获胜者支付价格"""
    if not amounts:
        raise ValueError("no bids to price")

    if tied and tie_payment == TiePayment.OWN_BID:
        return amounts[0]

    if rule == PricingRule.SECOND_PRICE:
        return amounts[1] if len(amounts) > 1 else amounts[0]

    if rule == PricingRule.MEDIAN_PRICE:
        return amounts[median_rank(len(amounts)) - 1]

    raise ValueError(f"Unsupported pricing rule: {rule}")


def run_sealed_bid_auction(
    bids: Dict[str, float],
    rule: PricingRule,
    rng: random.Random,
    tie_payment: TiePayment = TiePayment.PRICING_RULE
) -> AuctionOutcome:
    """对一组出价执行一次密封出价拍卖"""
    if not bids:
        raise ValueError("auction needs at least one bid")

    ordered = sort_bids(bids)
    winner_id, tied = pick_winner(ordered, rng)
    payment = compute_payment(
        [amount for _, amount in ordered],
        rule,
        tie_payment=tie_payment,
        tied=len(tied) > 1
    )
    return AuctionOutcome(winner_id=winner_id, payment=payment, sorted_bids=ordered, tied_ids=tied)

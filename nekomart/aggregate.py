"""
Order Service — 注文集約 (Order Aggregate)

注文ステータスの状態遷移を一箇所で管理する。
コマンド側は DB から読んだ行で集約を作り、遷移を検証してから書き込む。
"""

from enum import Enum

from .errors import InvalidState


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# 購入者がキャンセルできるのは出荷前まで
BUYER_CANCELLABLE = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
)


class OrderAggregate:
    """
    注文集約。現在のステータスと所有関係を持つ。

    状態遷移:
        PENDING    → CONFIRMED / CANCELLED
        CONFIRMED  → PROCESSING / CANCELLED
        PROCESSING → SHIPPED / CANCELLED
        SHIPPED    → DELIVERED
        DELIVERED  → REFUNDED
        CANCELLED, REFUNDED は終端
    """

    def __init__(self, order_id: str, status: str, buyer_id: str, store_owner_id: str) -> None:
        self.id = order_id
        self.status = OrderStatus(status)
        self.buyer_id = buyer_id
        self.store_owner_id = store_owner_id

    @classmethod
    def from_row(cls, row) -> "OrderAggregate":
        return cls(row.id, row.status, row.user_id, row.store_owner_id)

    # ── 遷移 ─────────────────────────────────────────

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in VALID_TRANSITIONS[self.status]

    def transition_to(self, target: OrderStatus | str) -> OrderStatus:
        """遷移を適用し、直前のステータスを返す。"""
        target = OrderStatus(target)
        if not self.can_transition_to(target):
            raise InvalidState(
                f"Cannot change status from {self.status.value} to {target.value}"
            )
        previous = self.status
        self.status = target
        return previous

    def cancel(self) -> OrderStatus:
        if self.status not in BUYER_CANCELLABLE:
            raise InvalidState("Order cannot be cancelled at this stage")
        return self.transition_to(OrderStatus.CANCELLED)

    def refund(self) -> OrderStatus:
        if self.status is not OrderStatus.DELIVERED:
            raise InvalidState("Only delivered orders can be refunded")
        return self.transition_to(OrderStatus.REFUNDED)

    # ── 権限 ─────────────────────────────────────────

    def is_buyer(self, user_id: str) -> bool:
        return self.buyer_id == user_id

    def is_seller(self, user_id: str) -> bool:
        return self.store_owner_id == user_id

"""
Order lifecycle — transition table, progress tracking and demo progression.

Store-owner flow (one atomic status write per step):

    DELIVERY: Placed → Accepted → Preparing → On the way → Delivered
    PICKUP:   Placed → Accepted → Preparing → Ready      → Picked Up

    Placed | Accepted     → Rejected
    any non-terminal      → Cancelled

Customer tracking shows a shorter step list (Accepted is folded into Placed):

    DELIVERY: Placed, Preparing, On the way, Delivered
    PICKUP:   Placed, Preparing, Ready, Picked Up

The demo simulator walks the tracking steps, one per tick.
"""
from dataclasses import dataclass

from domain.constants import DEFAULT_STEP_ICON, STEP_ICONS, STEP_LABELS
from domain.enums import DeliveryType, OrderMode, OrderStatus, PaymentStatus
from domain.errors import ConflictError, InvalidTransitionError
from domain.records import Order

S = OrderStatus

OWNER_FLOW: dict[OrderMode, tuple[OrderStatus, ...]] = {
    OrderMode.DELIVERY: (S.PLACED, S.ACCEPTED, S.PREPARING, S.ON_THE_WAY, S.DELIVERED),
    OrderMode.PICKUP: (S.PLACED, S.ACCEPTED, S.PREPARING, S.READY, S.PICKED_UP),
}

TRACKING_STEPS: dict[OrderMode, tuple[OrderStatus, ...]] = {
    OrderMode.DELIVERY: (S.PLACED, S.PREPARING, S.ON_THE_WAY, S.DELIVERED),
    OrderMode.PICKUP: (S.PLACED, S.PREPARING, S.READY, S.PICKED_UP),
}

COMPLETED = frozenset({S.DELIVERED, S.PICKED_UP})
TERMINAL = COMPLETED | {S.CANCELLED, S.REJECTED}
REJECTABLE = frozenset({S.PLACED, S.ACCEPTED})

# Owner console button text for the forward step out of each status
ACTION_LABELS = {
    S.PLACED: "Accept",
    S.ACCEPTED: "Start Packing",
    S.READY: "Handover / Pickup",
    S.ON_THE_WAY: "Mark Delivered",
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL


def is_active(status: OrderStatus) -> bool:
    """Orders still waiting on the store (counted as pending in the dashboard)."""
    return status in (S.PLACED, S.ACCEPTED, S.PREPARING)


def next_owner_step(status: OrderStatus, mode: OrderMode) -> OrderStatus | None:
    """The single forward step the store owner may take, or None at the end."""
    flow = OWNER_FLOW[mode]
    if status not in flow:
        return None
    idx = flow.index(status)
    if idx + 1 >= len(flow):
        return None
    return flow[idx + 1]


def allowed_targets(
    status: OrderStatus,
    mode: OrderMode,
    payment_status: PaymentStatus = PaymentStatus.PAID,
) -> set[OrderStatus]:
    """Every status reachable from `status` in one write."""
    if is_terminal(status):
        return set()
    targets = {S.CANCELLED}
    if status in REJECTABLE:
        targets.add(S.REJECTED)
    forward = next_owner_step(status, mode)
    # Unpaid orders stay at Placed until payment is confirmed
    if forward is not None and not (payment_status == PaymentStatus.PENDING and status == S.PLACED):
        targets.add(forward)
    return targets


def check_transition(
    current: OrderStatus,
    target: OrderStatus,
    mode: OrderMode,
    payment_status: PaymentStatus = PaymentStatus.PAID,
) -> None:
    """Raise InvalidTransitionError unless current → target is a single legal step."""
    if current == target:
        raise InvalidTransitionError(current.value, target.value, "order is already in that state")
    if is_terminal(current):
        raise InvalidTransitionError(current.value, target.value, "order is already closed")
    if target not in allowed_targets(current, mode, payment_status):
        reason = None
        if payment_status == PaymentStatus.PENDING and current == S.PLACED and target not in (S.REJECTED, S.CANCELLED):
            reason = "payment is still pending"
        elif target in OWNER_FLOW[mode]:
            reason = "steps must be taken in order"
        else:
            reason = f"not a {mode.value.lower()} status"
        raise InvalidTransitionError(current.value, target.value, reason)


def owner_actions(status: OrderStatus, mode: OrderMode, payment_status: PaymentStatus) -> list[dict]:
    """Buttons the owner console offers for an order, forward step first."""
    actions = []
    forward = next_owner_step(status, mode)
    if forward is not None and forward in allowed_targets(status, mode, payment_status):
        if status == S.PREPARING:
            label = "Mark Ready" if mode == OrderMode.PICKUP else "Out for Delivery"
        else:
            label = ACTION_LABELS.get(status, forward.value)
        actions.append({"label": label, "target": forward})
    if status == S.PLACED:
        actions.append({"label": "Reject", "target": S.REJECTED})
    return actions


# ── Customer progress ───────────────────────────────────────────────

@dataclass(frozen=True)
class Progress:
    """What the customer's timeline renders for one order."""
    steps: tuple[OrderStatus, ...]
    index: int
    fraction: float
    labels: tuple[str, ...]
    icons: tuple[str, ...]

    @property
    def percent(self) -> float:
        return self.fraction * 100.0

    def to_dict(self) -> dict:
        return {
            "steps": [step.value for step in self.steps],
            "labels": list(self.labels),
            "icons": list(self.icons),
            "index": self.index,
            "fraction": round(self.fraction, 4),
            "percent": round(self.percent, 1),
        }


def step_label(step: OrderStatus) -> str:
    return STEP_LABELS.get(step, step.value)


def step_icon(step: OrderStatus) -> str:
    return STEP_ICONS.get(step, DEFAULT_STEP_ICON)


def progress(status: OrderStatus | str | None, mode: OrderMode) -> Progress:
    """
    Position of `status` in the tracking steps for `mode`.

    Anything not on the list (Accepted, Rejected, unknown strings) sits at
    index 0; the timeline must always render.
    """
    steps = TRACKING_STEPS[mode]
    try:
        index = steps.index(status)
    except ValueError:
        index = 0
    fraction = index / (len(steps) - 1)
    return Progress(
        steps=steps,
        index=index,
        fraction=fraction,
        labels=tuple(step_label(s) for s in steps),
        icons=tuple(step_icon(s) for s in steps),
    )


# ── Demo progression ────────────────────────────────────────────────

def is_simulation_eligible(
    status: OrderStatus,
    payment_status: PaymentStatus,
    delivery_type: DeliveryType,
) -> bool:
    if is_terminal(status):
        return False
    # a scheduled order waits for its payment; the customer may still pay before the deadline
    if delivery_type == DeliveryType.SCHEDULED and payment_status == PaymentStatus.PENDING:
        return False
    return True


def simulated_next(
    status: OrderStatus,
    mode: OrderMode,
    payment_status: PaymentStatus,
    delivery_type: DeliveryType,
) -> OrderStatus:
    """One simulator tick: the next tracking step, or `status` unchanged."""
    if not is_simulation_eligible(status, payment_status, delivery_type):
        return status
    steps = TRACKING_STEPS[mode]
    if status == S.ACCEPTED:
        return S.PREPARING
    if status not in steps:
        return status
    idx = steps.index(status)
    return steps[min(idx + 1, len(steps) - 1)]


# ── Writes ──────────────────────────────────────────────────────────

def apply_transition(order: Order, target: OrderStatus, expected_version: int | None = None) -> Order:
    """
    The order after one owner-initiated status write.

    With `expected_version` the write only goes through if nobody else has
    written since the caller read the order; without it the last write wins.
    """
    if expected_version is not None and expected_version != order.version:
        raise ConflictError(
            f"Order {order.id} was changed by someone else; reload and try again",
            details={"expected_version": expected_version, "current_version": order.version},
        )
    check_transition(order.status, target, order.mode, order.payment_status)
    return order.model_copy(update={"status": target, "version": order.version + 1})


def apply_simulated_step(order: Order) -> Order | None:
    """The order after one demo tick, or None when it does not move."""
    target = simulated_next(order.status, order.mode, order.payment_status, order.delivery_type)
    if target == order.status:
        return None
    return order.model_copy(update={"status": target, "version": order.version + 1})

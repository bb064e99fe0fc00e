"""
Tests for the order lifecycle.

Tests: transition table, customer progress, owner actions, simulator steps.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from domain.enums import DeliveryType, OrderMode, OrderStatus, PaymentStatus
from domain.errors import ConflictError, InvalidTransitionError
from domain.lifecycle import (
    allowed_targets, apply_simulated_step, apply_transition, check_transition,
    next_owner_step, owner_actions, progress, simulated_next,
)
from tests.conftest import make_order

S = OrderStatus
DELIVERY = OrderMode.DELIVERY
PICKUP = OrderMode.PICKUP


class TestProgress:
    """Customer timeline position."""

    @pytest.mark.unit
    def test_preparing_is_one_third_for_delivery(self):
        p = progress(S.PREPARING, DELIVERY)
        assert p.index == 1
        assert p.fraction == pytest.approx(1 / 3)
        assert p.steps == (S.PLACED, S.PREPARING, S.ON_THE_WAY, S.DELIVERED)

    @pytest.mark.unit
    def test_pickup_steps(self):
        p = progress(S.READY, PICKUP)
        assert p.steps == (S.PLACED, S.PREPARING, S.READY, S.PICKED_UP)
        assert p.index == 2

    @pytest.mark.unit
    def test_completed_is_full(self):
        assert progress(S.DELIVERED, DELIVERY).fraction == 1.0
        assert progress(S.PICKED_UP, PICKUP).percent == 100.0

    @pytest.mark.unit
    def test_accepted_sits_at_first_step(self):
        """Accepted is folded into Placed on the customer timeline."""
        assert progress(S.ACCEPTED, DELIVERY).index == 0

    @pytest.mark.unit
    def test_unknown_status_still_renders(self):
        p = progress("Lost in transit", PICKUP)
        assert p.index == 0
        assert p.fraction == 0.0

    @pytest.mark.unit
    def test_labels_and_icons(self):
        data = progress(S.ON_THE_WAY, DELIVERY).to_dict()
        assert data["labels"] == ["Placed", "Packing", "On Way", "Delivered"]
        assert data["icons"][2] == "🛵"
        assert data["percent"] == pytest.approx(66.7)


class TestTransitions:
    """Owner-initiated status writes."""

    @pytest.mark.unit
    def test_forward_steps_are_allowed(self):
        check_transition(S.PLACED, S.ACCEPTED, DELIVERY)
        check_transition(S.ACCEPTED, S.PREPARING, DELIVERY)
        check_transition(S.PREPARING, S.ON_THE_WAY, DELIVERY)
        check_transition(S.ON_THE_WAY, S.DELIVERED, DELIVERY)
        check_transition(S.PREPARING, S.READY, PICKUP)
        check_transition(S.READY, S.PICKED_UP, PICKUP)

    @pytest.mark.unit
    def test_skipping_a_step_is_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(S.PLACED, S.PREPARING, DELIVERY)
        assert exc_info.value.status_code == 409
        assert "in order" in exc_info.value.message

    @pytest.mark.unit
    def test_pickup_status_on_delivery_order_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            check_transition(S.PREPARING, S.READY, DELIVERY)

    @pytest.mark.unit
    def test_terminal_orders_do_not_move(self):
        for status in (S.DELIVERED, S.CANCELLED, S.REJECTED):
            assert allowed_targets(status, DELIVERY) == set()
            with pytest.raises(InvalidTransitionError):
                check_transition(status, S.CANCELLED, DELIVERY)

    @pytest.mark.unit
    def test_reject_only_before_preparing(self):
        check_transition(S.PLACED, S.REJECTED, DELIVERY)
        check_transition(S.ACCEPTED, S.REJECTED, PICKUP)
        with pytest.raises(InvalidTransitionError):
            check_transition(S.PREPARING, S.REJECTED, DELIVERY)

    @pytest.mark.unit
    def test_cancel_from_any_open_status(self):
        for status in (S.PLACED, S.ACCEPTED, S.PREPARING, S.ON_THE_WAY):
            check_transition(status, S.CANCELLED, DELIVERY)

    @pytest.mark.unit
    def test_unpaid_order_cannot_be_accepted(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(S.PLACED, S.ACCEPTED, DELIVERY, PaymentStatus.PENDING)
        assert "payment is still pending" in exc_info.value.message
        # but it can still be turned down
        check_transition(S.PLACED, S.REJECTED, DELIVERY, PaymentStatus.PENDING)

    @pytest.mark.unit
    def test_next_owner_step(self):
        assert next_owner_step(S.PLACED, DELIVERY) == S.ACCEPTED
        assert next_owner_step(S.PREPARING, PICKUP) == S.READY
        assert next_owner_step(S.DELIVERED, DELIVERY) is None
        assert next_owner_step(S.REJECTED, DELIVERY) is None


class TestApplyTransition:

    @pytest.mark.unit
    def test_bumps_version(self):
        order = make_order()
        updated = apply_transition(order, S.ACCEPTED)
        assert updated.status == S.ACCEPTED
        assert updated.version == 2
        assert order.status == S.PLACED

    @pytest.mark.unit
    def test_matching_expected_version(self):
        updated = apply_transition(make_order(version=4), S.ACCEPTED, expected_version=4)
        assert updated.version == 5

    @pytest.mark.unit
    def test_stale_expected_version_conflicts(self):
        with pytest.raises(ConflictError) as exc_info:
            apply_transition(make_order(version=3), S.ACCEPTED, expected_version=2)
        assert not isinstance(exc_info.value, InvalidTransitionError)
        assert exc_info.value.details["current_version"] == 3


class TestOwnerActions:

    @pytest.mark.unit
    def test_placed_offers_accept_and_reject(self):
        actions = owner_actions(S.PLACED, DELIVERY, PaymentStatus.PAID)
        assert [a["label"] for a in actions] == ["Accept", "Reject"]
        assert actions[0]["target"] == S.ACCEPTED

    @pytest.mark.unit
    def test_preparing_label_depends_on_mode(self):
        assert owner_actions(S.PREPARING, PICKUP, PaymentStatus.PAID)[0]["label"] == "Mark Ready"
        assert owner_actions(S.PREPARING, DELIVERY, PaymentStatus.PAID)[0]["label"] == "Out for Delivery"

    @pytest.mark.unit
    def test_unpaid_order_offers_only_reject(self):
        actions = owner_actions(S.PLACED, DELIVERY, PaymentStatus.PENDING)
        assert [a["target"] for a in actions] == [S.REJECTED]

    @pytest.mark.unit
    def test_closed_order_has_no_actions(self):
        assert owner_actions(S.DELIVERED, DELIVERY, PaymentStatus.PAID) == []


class TestSimulatedSteps:

    @pytest.mark.unit
    def test_walks_tracking_steps(self):
        args = (PaymentStatus.PAID, DeliveryType.INSTANT)
        assert simulated_next(S.PLACED, DELIVERY, *args) == S.PREPARING
        assert simulated_next(S.ACCEPTED, DELIVERY, *args) == S.PREPARING
        assert simulated_next(S.PREPARING, PICKUP, *args) == S.READY
        assert simulated_next(S.ON_THE_WAY, DELIVERY, *args) == S.DELIVERED

    @pytest.mark.unit
    def test_unpaid_scheduled_order_waits(self):
        assert simulated_next(S.PLACED, DELIVERY, PaymentStatus.PENDING, DeliveryType.SCHEDULED) == S.PLACED

    @pytest.mark.unit
    def test_only_scheduled_orders_wait_for_payment(self):
        assert simulated_next(S.PLACED, DELIVERY, PaymentStatus.PENDING, DeliveryType.INSTANT) == S.PREPARING
        assert simulated_next(S.PLACED, DELIVERY, PaymentStatus.PAID, DeliveryType.SCHEDULED) == S.PREPARING

    @pytest.mark.unit
    def test_terminal_order_does_not_step(self):
        assert apply_simulated_step(make_order(status=S.DELIVERED)) is None
        assert apply_simulated_step(make_order(status=S.CANCELLED)) is None

    @pytest.mark.unit
    def test_step_bumps_version(self):
        step = apply_simulated_step(make_order())
        assert step.status == S.PREPARING
        assert step.version == 2

"""Tests for printshop.services.lifecycle (OrderLifecycleEngine)."""

from datetime import timedelta
from decimal import Decimal

import pytest

from printshop.core.exceptions import (
    AlreadyTransitioned,
    ClientNotApproved,
    GuardViolation,
    InvalidSpec,
    NotFoundError,
    NotPayable,
    UnknownRate,
)
from printshop.models.order import BillingStatus, Order, OrderAction, OrderStatus, PricingBasis, resolve_transition


@pytest.fixture
def postpaid_client(make_client):
    return make_client("kubus")


@pytest.fixture
def prepaid_client(make_client):
    return make_client("walk-in")


def _done(lifecycle, order_id, actor="admin-1"):
    lifecycle.transition(order_id, OrderAction.VERIFY, actor)
    lifecycle.transition(order_id, OrderAction.APPROVE, actor)
    return lifecycle.transition(order_id, OrderAction.COMPLETE, actor)


class TestResolveTransition:
    @pytest.mark.parametrize(
        "current,action,target",
        [
            (OrderStatus.PENDING, OrderAction.VERIFY, OrderStatus.VERIFYING),
            (OrderStatus.PENDING, OrderAction.CANCEL, OrderStatus.CANCELLED),
            (OrderStatus.VERIFYING, OrderAction.APPROVE, OrderStatus.APPROVED),
            (OrderStatus.VERIFYING, OrderAction.REJECT, OrderStatus.CANCELLED),
            (OrderStatus.APPROVED, OrderAction.COMPLETE, OrderStatus.DONE),
        ],
    )
    def test_legal_moves(self, current, action, target):
        assert resolve_transition(current, action) == (current, target)

    @pytest.mark.parametrize(
        "current,action",
        [
            (OrderStatus.VERIFYING, OrderAction.VERIFY),
            (OrderStatus.APPROVED, OrderAction.VERIFY),
            (OrderStatus.DONE, OrderAction.APPROVE),
            (OrderStatus.CANCELLED, OrderAction.CANCEL),
            (OrderStatus.CANCELLED, OrderAction.REJECT),
            (OrderStatus.DONE, OrderAction.COMPLETE),
        ],
    )
    def test_at_or_past_target_is_already_transitioned(self, current, action):
        with pytest.raises(AlreadyTransitioned):
            resolve_transition(current, action)

    @pytest.mark.parametrize(
        "current,action",
        [
            (OrderStatus.PENDING, OrderAction.APPROVE),
            (OrderStatus.PENDING, OrderAction.COMPLETE),
            (OrderStatus.VERIFYING, OrderAction.COMPLETE),
            (OrderStatus.APPROVED, OrderAction.REJECT),
            (OrderStatus.VERIFYING, OrderAction.CANCEL),
            (OrderStatus.DONE, OrderAction.CANCEL),
            (OrderStatus.CANCELLED, OrderAction.APPROVE),
        ],
    )
    def test_illegal_from_current_is_guard_violation(self, current, action):
        with pytest.raises(GuardViolation):
            resolve_transition(current, action)


class TestCreateOrder:
    def test_reference_pricing_and_postpaid_gate(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        assert order.id is not None
        assert order.status == OrderStatus.PENDING
        assert order.pricing_basis == PricingBasis.AREA
        assert order.amount_subtotal == Decimal("12000")
        assert order.tax_amount == Decimal("0")
        assert order.amount_total == Decimal("12000")
        assert order.vendor_whitelisted is True
        assert order.payment_required is False
        assert order.payment_deadline is None
        assert order.payment_url is None
        assert order.billing_status == BillingStatus.UNPAID

    def test_prepaid_gets_deadline_and_link(self, lifecycle, prepaid_client, spec, clock, settings):
        order = lifecycle.create_order(prepaid_client.id, spec())
        assert order.vendor_whitelisted is False
        assert order.payment_required is True
        assert order.payment_deadline == clock.now + timedelta(minutes=settings.PAYMENT_WINDOW_MINUTES)
        assert order.payment_url == f"{settings.public_url}/pay/{order.id}"

    def test_client_without_vendor_is_prepaid(self, lifecycle, make_client, spec):
        client = make_client(None)
        assert lifecycle.create_order(client.id, spec()).payment_required is True

    def test_gate_is_fixed_at_creation(self, lifecycle, prepaid_client, spec, services):
        order = lifecycle.create_order(prepaid_client.id, spec())
        services.vendors.upsert("walk-in", True)
        assert lifecycle.get_order(order.id).payment_required is True
        assert lifecycle.create_order(prepaid_client.id, spec()).payment_required is False

    def test_design_files_are_stored(self, lifecycle, postpaid_client, spec):
        files = [{"name": "front.pdf", "path": "uploads/1/front.pdf", "size": 2048, "media_type": "application/pdf"}]
        order = lifecycle.create_order(postpaid_client.id, spec(design_files=files, notes="  matte  "))
        stored = lifecycle.get_order(order.id)
        assert stored.design_files == files
        assert stored.notes == "matte"

    @pytest.mark.parametrize(
        "ref",
        [
            {"path": "uploads/1/front.pdf"},
            {"name": "  ", "path": "uploads/1/front.pdf"},
            {"name": "front.pdf"},
            {"name": "front.pdf", "path": "uploads/1/front.pdf", "size": -5},
        ],
    )
    def test_incomplete_design_file_is_rejected(self, lifecycle, postpaid_client, spec, ref):
        with pytest.raises(InvalidSpec):
            lifecycle.create_order(postpaid_client.id, spec(design_files=[ref]))
        assert lifecycle.list_by_client(postpaid_client.id) == []

    def test_unknown_rate_writes_nothing(self, lifecycle, postpaid_client, spec):
        with pytest.raises(UnknownRate):
            lifecycle.create_order(postpaid_client.id, spec(material="Gold Leaf"))
        assert lifecycle.list_by_client(postpaid_client.id) == []

    @pytest.mark.parametrize(
        "overrides",
        [{"title": "   "}, {"width_cm": Decimal("0")}, {"height_cm": None}, {"quantity": 0}],
    )
    def test_invalid_spec(self, lifecycle, postpaid_client, spec, overrides):
        with pytest.raises(InvalidSpec):
            lifecycle.create_order(postpaid_client.id, spec(**overrides))
        assert lifecycle.list_by_client(postpaid_client.id) == []

    def test_unapproved_client_is_refused(self, lifecycle, make_client, spec):
        client = make_client("kubus", approved=False)
        with pytest.raises(ClientNotApproved) as ei:
            lifecycle.create_order(client.id, spec())
        assert ei.value.http_status == 403

    def test_unknown_client(self, lifecycle, spec):
        with pytest.raises(NotFoundError):
            lifecycle.create_order(4242, spec())


class TestTransitions:
    def test_postpaid_verifies_without_payment(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        verified = lifecycle.transition(order.id, OrderAction.VERIFY, "admin-1")
        assert verified.status == OrderStatus.VERIFYING
        assert verified.paid_at is None

    def test_prepaid_unpaid_cannot_verify(self, lifecycle, prepaid_client, spec):
        order = lifecycle.create_order(prepaid_client.id, spec())
        with pytest.raises(GuardViolation) as ei:
            lifecycle.transition(order.id, "verify", "admin-1")
        assert ei.value.code == "PAYMENT_REQUIRED"
        assert lifecycle.get_order(order.id).status == OrderStatus.PENDING

    def test_full_postpaid_path_records_actors_and_lazy_link(self, lifecycle, postpaid_client, spec, clock, settings):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        clock.advance(minutes=5)
        approved = lifecycle.transition(order.id, "approve", "admin-2")
        assert approved.approved_by == "admin-2"
        assert approved.approved_at == clock.now
        assert approved.payment_url is None
        clock.advance(minutes=5)
        done = lifecycle.transition(order.id, "complete", "admin-3")
        assert done.status == OrderStatus.DONE
        assert done.completed_by == "admin-3"
        assert done.completed_at == clock.now
        assert done.payment_url == f"{settings.public_url}/pay/{order.id}"

    def test_complete_fills_blank_link(self, lifecycle, postpaid_client, spec, settings):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.store.bulk_update({"payment_url": ""}, Order.id == order.id)
        lifecycle.transition(order.id, "verify", "admin-1")
        lifecycle.transition(order.id, "approve", "admin-1")
        done = lifecycle.transition(order.id, "complete", "admin-1")
        assert done.payment_url == f"{settings.public_url}/pay/{order.id}"

    def test_complete_keeps_existing_link(self, lifecycle, prepaid_client, spec):
        order = lifecycle.create_order(prepaid_client.id, spec())
        lifecycle.confirm_payment(order.id)
        lifecycle.transition(order.id, "approve", "admin-1")
        done = lifecycle.transition(order.id, "complete", "admin-1")
        assert done.payment_url == order.payment_url

    def test_reject_from_verifying(self, lifecycle, postpaid_client, spec, clock):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        rejected = lifecycle.transition(order.id, "reject", "admin-1")
        assert rejected.status == OrderStatus.CANCELLED
        assert rejected.cancelled_at == clock.now
        assert rejected.billing_status == BillingStatus.CANCELLED

    def test_cancel_pending(self, lifecycle, prepaid_client, spec):
        order = lifecycle.create_order(prepaid_client.id, spec())
        cancelled = lifecycle.transition(order.id, "cancel", "admin-1")
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.payment_required is True

    def test_approve_pending_is_guard_violation(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        with pytest.raises(GuardViolation):
            lifecycle.transition(order.id, "approve", "admin-1")

    def test_repeat_verify_is_already_transitioned(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        with pytest.raises(AlreadyTransitioned):
            lifecycle.transition(order.id, "verify", "admin-1")

    def test_cancel_done_is_guard_violation(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        _done(lifecycle, order.id)
        with pytest.raises(GuardViolation):
            lifecycle.transition(order.id, "cancel", "admin-1")

    def test_cancel_verifying_is_guard_violation(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        with pytest.raises(GuardViolation):
            lifecycle.transition(order.id, "cancel", "admin-1")
        assert lifecycle.get_order(order.id).status == OrderStatus.VERIFYING

    def test_repeat_cancel_is_already_transitioned(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "cancel", "admin-1")
        with pytest.raises(AlreadyTransitioned):
            lifecycle.transition(order.id, "reject", "admin-1")

    def test_unknown_action(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        with pytest.raises(InvalidSpec) as ei:
            lifecycle.transition(order.id, "ship", "admin-1")
        assert ei.value.code == "UNKNOWN_ACTION"

    def test_unknown_order(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.transition(9999, "verify", "admin-1")
        with pytest.raises(NotFoundError):
            lifecycle.get_order(9999)


class TestBatch:
    def test_partial_success_is_reported_per_id(self, lifecycle, postpaid_client, prepaid_client, spec):
        a = lifecycle.create_order(postpaid_client.id, spec())
        b = lifecycle.create_order(prepaid_client.id, spec())
        c = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(c.id, "verify", "admin-1")

        result = lifecycle.transition_many([a.id, b.id, c.id, 9999, a.id], "verify", "admin-2")

        assert result.succeeded == [a.id]
        assert result.failed == {
            b.id: "PAYMENT_REQUIRED",
            c.id: "ALREADY_TRANSITIONED",
            9999: "NOT_FOUND",
        }
        assert result.ok is False
        assert lifecycle.get_order(a.id).status == OrderStatus.VERIFYING
        assert lifecycle.get_order(b.id).status == OrderStatus.PENDING

    def test_all_succeed(self, lifecycle, postpaid_client, spec):
        ids = [lifecycle.create_order(postpaid_client.id, spec()).id for _ in range(3)]
        result = lifecycle.transition_many(ids, OrderAction.CANCEL, "admin-1")
        assert result.succeeded == ids
        assert result.ok
        assert sorted(o.id for o in lifecycle.list_by_status(OrderStatus.CANCELLED)) == sorted(ids)

    def test_cancel_on_verifying_is_reported_as_guard_violation(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        result = lifecycle.transition_many([order.id], "cancel", "admin-1")
        assert result.failed == {order.id: "GUARD_VIOLATION"}


class TestConfirmPayment:
    def test_prepaid_confirmation_advances_to_verifying(self, lifecycle, prepaid_client, spec, clock):
        order = lifecycle.create_order(prepaid_client.id, spec())
        clock.advance(minutes=10)
        res = lifecycle.confirm_payment(order.id)
        assert res.mode == "prepaid"
        assert res.updated is True
        assert res.order.status == OrderStatus.VERIFYING
        assert res.order.paid_at == clock.now
        assert res.order.billing_status == BillingStatus.PAID

    def test_prepaid_confirmation_at_deadline_is_accepted(self, lifecycle, prepaid_client, spec, clock, settings):
        order = lifecycle.create_order(prepaid_client.id, spec())
        clock.advance(minutes=settings.PAYMENT_WINDOW_MINUTES)
        assert lifecycle.confirm_payment(order.id).order.status == OrderStatus.VERIFYING

    def test_prepaid_past_deadline_is_not_payable(self, lifecycle, prepaid_client, spec, clock, settings):
        order = lifecycle.create_order(prepaid_client.id, spec())
        clock.advance(minutes=settings.PAYMENT_WINDOW_MINUTES, seconds=1)
        with pytest.raises(NotPayable):
            lifecycle.confirm_payment(order.id)
        stored = lifecycle.get_order(order.id)
        assert stored.status == OrderStatus.PENDING
        assert stored.paid_at is None

    def test_postpaid_done_then_repeat_is_noop(self, lifecycle, postpaid_client, spec, clock):
        order = lifecycle.create_order(postpaid_client.id, spec())
        _done(lifecycle, order.id)
        clock.advance(days=3)
        first = lifecycle.confirm_payment(order.id)
        assert first.mode == "postpaid"
        assert first.updated is True
        assert first.order.status == OrderStatus.DONE
        assert first.order.paid_at == clock.now

        paid_at = first.order.paid_at
        clock.advance(hours=1)
        second = lifecycle.confirm_payment(order.id)
        assert second.updated is False
        assert second.order.paid_at == paid_at
        assert second.order.status == OrderStatus.DONE

    def test_pending_postpaid_is_not_payable(self, lifecycle, postpaid_client, spec):
        order = lifecycle.create_order(postpaid_client.id, spec())
        with pytest.raises(NotPayable):
            lifecycle.confirm_payment(order.id)

    @pytest.mark.parametrize("steps", [["verify"], ["verify", "approve"], ["cancel"]])
    def test_other_states_are_not_payable(self, lifecycle, postpaid_client, spec, steps):
        order = lifecycle.create_order(postpaid_client.id, spec())
        for step in steps:
            lifecycle.transition(order.id, step, "admin-1")
        with pytest.raises(NotPayable):
            lifecycle.confirm_payment(order.id)

    def test_paid_prepaid_in_verifying_is_not_payable_again(self, lifecycle, prepaid_client, spec):
        order = lifecycle.create_order(prepaid_client.id, spec())
        lifecycle.confirm_payment(order.id)
        with pytest.raises(NotPayable):
            lifecycle.confirm_payment(order.id)

    def test_unknown_order(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.confirm_payment(9999)


class TestReads:
    def test_list_by_client_and_status(self, lifecycle, postpaid_client, prepaid_client, make_client, spec):
        a = lifecycle.create_order(postpaid_client.id, spec())
        b = lifecycle.create_order(postpaid_client.id, spec(title="Second"))
        lifecycle.create_order(prepaid_client.id, spec())
        lifecycle.transition(a.id, "verify", "admin-1")

        assert {o.id for o in lifecycle.list_by_client(postpaid_client.id)} == {a.id, b.id}
        assert lifecycle.list_by_client(make_client("kubus").id) == []
        assert [o.id for o in lifecycle.list_by_status(OrderStatus.VERIFYING)] == [a.id]
        assert len(lifecycle.list_by_status("pending")) == 2
        assert len(lifecycle.list_by_status()) == 3


class TestRaces:
    def test_stale_verify_loses_to_concurrent_verify(self, lifecycle, postpaid_client, spec, monkeypatch):
        order = lifecycle.create_order(postpaid_client.id, spec())
        stale = lifecycle.get_order(order.id)
        lifecycle.transition(order.id, "verify", "admin-1")

        monkeypatch.setattr(lifecycle.store, "get", lambda _id: stale)
        with pytest.raises(AlreadyTransitioned):
            lifecycle.transition(order.id, "verify", "admin-2")

    def test_stale_approve_loses_to_reject(self, lifecycle, postpaid_client, spec, monkeypatch):
        order = lifecycle.create_order(postpaid_client.id, spec())
        lifecycle.transition(order.id, "verify", "admin-1")
        stale = lifecycle.get_order(order.id)
        lifecycle.transition(order.id, "reject", "admin-1")

        monkeypatch.setattr(lifecycle.store, "get", lambda _id: stale)
        with pytest.raises(AlreadyTransitioned):
            lifecycle.transition(order.id, "approve", "admin-2")
        monkeypatch.undo()
        stored = lifecycle.get_order(order.id)
        assert stored.status == OrderStatus.CANCELLED
        assert stored.approved_at is None

"""
Tests for the transaction state machine.

Tests cover:
- The allowed-transition table and its queries
- django-fsm transitions on Transaction, including field side effects
- Rejection of every transition the table does not allow
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.test import override_settings
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from authentication.tests.factories import AdminUserFactory, UserFactory
from payments.state_machines import (
    ALLOWED_TRANSITIONS,
    DisputeStatus,
    TransactionStateMachine,
    TransactionStatus,
)
from payments.tests.factories import TransactionFactory


def build_transaction(status=TransactionStatus.PENDING, **kwargs):
    return TransactionFactory.build(status=status, **kwargs)


class TestTransitionTable:
    @pytest.mark.parametrize(
        "source,target",
        [
            (TransactionStatus.PENDING, TransactionStatus.PAYMENT_RECEIVED),
            (TransactionStatus.PENDING, TransactionStatus.CANCELLED),
            (TransactionStatus.PAYMENT_RECEIVED, TransactionStatus.SHIPPED),
            (TransactionStatus.SHIPPED, TransactionStatus.DELIVERED),
            (TransactionStatus.SHIPPED, TransactionStatus.DISPUTED),
            (TransactionStatus.DELIVERED, TransactionStatus.COMPLETED),
            (TransactionStatus.DELIVERED, TransactionStatus.DISPUTED),
            (TransactionStatus.DISPUTED, TransactionStatus.COMPLETED),
            (TransactionStatus.DISPUTED, TransactionStatus.REFUNDED),
        ],
    )
    def test_allowed(self, source, target):
        assert TransactionStateMachine.can_transition(source, target)

    @pytest.mark.parametrize(
        "source,target",
        [
            (TransactionStatus.PENDING, TransactionStatus.SHIPPED),
            (TransactionStatus.PENDING, TransactionStatus.DELIVERED),
            (TransactionStatus.PAYMENT_RECEIVED, TransactionStatus.DELIVERED),
            (TransactionStatus.PAYMENT_RECEIVED, TransactionStatus.DISPUTED),
            (TransactionStatus.SHIPPED, TransactionStatus.COMPLETED),
            (TransactionStatus.DELIVERED, TransactionStatus.REFUNDED),
            (TransactionStatus.COMPLETED, TransactionStatus.DISPUTED),
            (TransactionStatus.REFUNDED, TransactionStatus.COMPLETED),
            (TransactionStatus.CANCELLED, TransactionStatus.PAYMENT_RECEIVED),
        ],
    )
    def test_not_allowed(self, source, target):
        assert not TransactionStateMachine.can_transition(source, target)

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(TransactionStatus.values)

    def test_terminal_states(self):
        assert sorted(TransactionStateMachine.terminal_states()) == [
            TransactionStatus.CANCELLED,
            TransactionStatus.COMPLETED,
            TransactionStatus.REFUNDED,
        ]
        assert TransactionStateMachine.is_terminal(TransactionStatus.REFUNDED)
        assert not TransactionStateMachine.is_terminal(TransactionStatus.DISPUTED)

    def test_sources_for_disputed(self):
        assert TransactionStateMachine.sources_for(TransactionStatus.DISPUTED) == [
            TransactionStatus.DELIVERED,
            TransactionStatus.SHIPPED,
        ]


class TestTransactionTransitions:
    def test_mark_payment_received_keeps_funds_held(self):
        txn = build_transaction()

        txn.mark_payment_received(stripe_status="succeeded", charge_id="ch_123")

        assert txn.status == TransactionStatus.PAYMENT_RECEIVED
        assert txn.stripe_status == "succeeded"
        assert txn.stripe_charge_id == "ch_123"
        assert txn.funds_held is True
        assert txn.paid_at is not None

    def test_cancel_from_pending(self):
        txn = build_transaction()

        txn.cancel(stripe_status="canceled")

        assert txn.status == TransactionStatus.CANCELLED
        assert txn.funds_held is False
        assert txn.cancelled_at is not None

    def test_mark_shipped(self):
        txn = build_transaction(TransactionStatus.PAYMENT_RECEIVED)

        txn.mark_shipped(tracking_number="1Z999AA10123456784", carrier="UPS")

        assert txn.status == TransactionStatus.SHIPPED
        assert txn.carrier == "UPS"
        assert txn.shipped_at is not None

    @override_settings(ESCROW_RELEASE_HOURS=24)
    def test_mark_delivered_starts_hold_from_carrier_time(self):
        txn = build_transaction(TransactionStatus.SHIPPED)
        delivered_at = timezone.now() - timedelta(hours=5)

        txn.mark_delivered(delivered_at)

        assert txn.status == TransactionStatus.DELIVERED
        assert txn.delivered_at == delivered_at
        assert txn.escrow_release_at == delivered_at + timedelta(hours=24)

    @pytest.mark.parametrize(
        "source", [TransactionStatus.SHIPPED, TransactionStatus.DELIVERED]
    )
    def test_open_dispute_pauses_escrow_clock(self, source):
        opener = UserFactory.build()
        txn = build_transaction(source, escrow_release_at=timezone.now() + timedelta(hours=3))

        txn.open_dispute(opened_by=opener, reason="Wrong model")

        assert txn.status == TransactionStatus.DISPUTED
        assert txn.dispute_status == DisputeStatus.OPEN
        assert txn.escrow_release_at is None
        assert txn.funds_held is True

    def test_release_escrow(self):
        txn = build_transaction(TransactionStatus.DELIVERED)

        txn.release_escrow()

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.funds_held is False
        assert txn.funds_released_at == txn.completed_at

    def test_resolve_refunded(self):
        admin = AdminUserFactory.build()
        txn = build_transaction(TransactionStatus.DISPUTED, dispute_status=DisputeStatus.OPEN)

        txn.resolve_refunded(
            dispute_status=DisputeStatus.RESOLVED_BUYER,
            resolved_by=admin,
            refunded_amount=Decimal("229.99"),
            refund_id="re_1",
        )

        assert txn.status == TransactionStatus.REFUNDED
        assert txn.refunded_amount == Decimal("229.99")
        assert txn.stripe_refund_id == "re_1"
        assert txn.funds_held is False
        assert txn.funds_released_at is None

    def test_resolve_completed_releases_funds(self):
        admin = AdminUserFactory.build()
        txn = build_transaction(TransactionStatus.DISPUTED, dispute_status=DisputeStatus.OPEN)

        txn.resolve_completed(
            dispute_status=DisputeStatus.RESOLVED_SELLER,
            resolved_by=admin,
            release_funds=True,
        )

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.dispute_status == DisputeStatus.RESOLVED_SELLER
        assert txn.funds_released_at == txn.dispute_resolved_at


class TestRejectedTransitions:
    @pytest.mark.parametrize(
        "status",
        [
            TransactionStatus.PENDING,
            TransactionStatus.SHIPPED,
            TransactionStatus.COMPLETED,
        ],
    )
    def test_cannot_ship_unless_paid(self, status):
        txn = build_transaction(status)

        with pytest.raises(TransitionNotAllowed):
            txn.mark_shipped(tracking_number="1Z999AA10123456784", carrier="UPS")

    @pytest.mark.parametrize(
        "status",
        [
            TransactionStatus.PENDING,
            TransactionStatus.PAYMENT_RECEIVED,
            TransactionStatus.COMPLETED,
            TransactionStatus.REFUNDED,
        ],
    )
    def test_cannot_dispute(self, status):
        txn = build_transaction(status)

        with pytest.raises(TransitionNotAllowed):
            txn.open_dispute(opened_by=UserFactory.build(), reason="x")

    @pytest.mark.parametrize(
        "status",
        [
            TransactionStatus.PENDING,
            TransactionStatus.PAYMENT_RECEIVED,
            TransactionStatus.DISPUTED,
        ],
    )
    def test_cannot_deliver_unless_shipped(self, status):
        txn = build_transaction(status)

        with pytest.raises(TransitionNotAllowed):
            txn.mark_delivered(timezone.now())

        assert txn.status == status
        assert txn.delivered_at is None
        assert txn.escrow_release_at is None

    def test_cannot_release_while_disputed(self):
        txn = build_transaction(TransactionStatus.DISPUTED)

        with pytest.raises(TransitionNotAllowed):
            txn.release_escrow()

    def test_cannot_cancel_after_payment(self):
        txn = build_transaction(TransactionStatus.PAYMENT_RECEIVED)

        with pytest.raises(TransitionNotAllowed):
            txn.cancel(stripe_status="canceled")

    def test_status_cannot_be_assigned_directly(self):
        txn = build_transaction()

        with pytest.raises(AttributeError):
            txn.status = TransactionStatus.COMPLETED

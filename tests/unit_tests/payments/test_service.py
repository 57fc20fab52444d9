"""Unit tests for the payments service layer.

These tests verify the approval and settlement workflows, role checks and
the notifications each step emits.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from errors import InvalidTransitionError, NotFoundError, PermissionDenied, QueryError, ValidationFailed
from models.payment import ApprovalStatus, PaymentCreate, PaymentMethodCreate, PaymentStatus
from repos import notifications_repo
from services import balances_service, payments_service


@pytest.mark.asyncio
async def test_service_client_payment_starts_pending_and_notifies_admins(
    db_session: AsyncSession, admin, ctx_a, client_a, create_project
):
    project = await create_project(client_a)

    payment = await payments_service.create_payment(
        db_session,
        ctx=ctx_a,
        payload=PaymentCreate(project_id=project.id, amount=Decimal("150.00"), reference_number="TRX-1"),
    )

    assert payment.status == PaymentStatus.PENDING.value
    assert payment.approval_status == ApprovalStatus.PENDING.value
    assert payment.created_by == client_a.id
    assert payment.payment_date is not None

    admin_feed = await notifications_repo.list(db_session, user_id=admin.id)
    assert len(admin_feed) == 1
    assert admin_feed[0].related_payment_id == payment.id


@pytest.mark.asyncio
async def test_service_client_cannot_pay_on_foreign_project(
    db_session: AsyncSession, ctx_b, client_a, create_project
):
    project = await create_project(client_a)

    with pytest.raises(NotFoundError):
        await payments_service.create_payment(
            db_session,
            ctx=ctx_b,
            payload=PaymentCreate(project_id=project.id, amount=Decimal("10.00")),
        )


@pytest.mark.asyncio
async def test_service_unknown_payment_method_rejected(
    db_session: AsyncSession, admin_ctx, client_a, create_project
):
    project = await create_project(client_a)

    with pytest.raises(ValidationFailed):
        await payments_service.create_payment(
            db_session,
            ctx=admin_ctx,
            payload=PaymentCreate(project_id=project.id, amount=Decimal("10.00"), payment_method_id=uuid4()),
        )


@pytest.mark.asyncio
async def test_service_pending_payment_counts_only_after_approval(
    db_session: AsyncSession, admin_ctx, ctx_a, client_a, create_project
):
    """A pending payment never moves the balance until approved and completed."""
    project = await create_project(client_a, total_amount="1000.00")
    payment = await payments_service.create_payment(
        db_session,
        ctx=ctx_a,
        payload=PaymentCreate(project_id=project.id, amount=Decimal("400.00")),
    )

    before = await balances_service.get_project_balance(db_session, ctx=admin_ctx, project_id=project.id)
    assert before.paid_amount == Decimal("0.00")

    await payments_service.update_settlement_status(
        db_session, ctx=admin_ctx, payment_id=payment.id, status=PaymentStatus.COMPLETED
    )
    still_pending = await balances_service.get_project_balance(db_session, ctx=admin_ctx, project_id=project.id)
    assert still_pending.paid_amount == Decimal("0.00")

    await payments_service.approve_payment(db_session, ctx=admin_ctx, payment_id=payment.id)
    after = await balances_service.get_project_balance(db_session, ctx=admin_ctx, project_id=project.id)
    assert after.paid_amount == Decimal("400.00")
    assert after.remaining_balance == Decimal("600.00")


@pytest.mark.asyncio
async def test_service_approve_records_approver_and_notifies_client(
    db_session: AsyncSession, admin, admin_ctx, client_a, create_project, create_payment
):
    project = await create_project(client_a)
    payment = await create_payment(project, "100.00", approval_status=ApprovalStatus.PENDING)

    approved = await payments_service.approve_payment(db_session, ctx=admin_ctx, payment_id=payment.id)

    assert approved.approval_status == ApprovalStatus.APPROVED.value
    assert approved.approved_by == admin.id
    assert approved.approved_at is not None
    feed = await notifications_repo.list(db_session, user_id=client_a.id)
    assert [n.title for n in feed] == ["Payment approved"]


@pytest.mark.asyncio
async def test_service_reject_stores_reason(
    db_session: AsyncSession, admin_ctx, client_a, create_project, create_payment
):
    project = await create_project(client_a)
    payment = await create_payment(project, "100.00", approval_status=ApprovalStatus.PENDING)

    rejected = await payments_service.reject_payment(
        db_session, ctx=admin_ctx, payment_id=payment.id, reason="Duplicate transfer"
    )

    assert rejected.approval_status == ApprovalStatus.REJECTED.value
    assert rejected.rejection_reason == "Duplicate transfer"
    feed = await notifications_repo.list(db_session, user_id=client_a.id)
    assert "Duplicate transfer" in feed[0].message


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.CANCELLED])
async def test_service_terminal_approval_states_cannot_change(
    db_session: AsyncSession, admin_ctx, client_a, create_project, create_payment, terminal
):
    project = await create_project(client_a)
    payment = await create_payment(project, "100.00", approval_status=terminal)

    with pytest.raises(InvalidTransitionError):
        await payments_service.approve_payment(db_session, ctx=admin_ctx, payment_id=payment.id)
    with pytest.raises(InvalidTransitionError):
        await payments_service.cancel_payment(db_session, ctx=admin_ctx, payment_id=payment.id)


@pytest.mark.asyncio
async def test_service_client_cannot_approve(
    db_session: AsyncSession, ctx_a, client_a, create_project, create_payment
):
    project = await create_project(client_a)
    payment = await create_payment(project, "100.00", approval_status=ApprovalStatus.PENDING)

    with pytest.raises(PermissionDenied):
        await payments_service.approve_payment(db_session, ctx=ctx_a, payment_id=payment.id)


@pytest.mark.asyncio
async def test_service_settlement_transitions(
    db_session: AsyncSession, admin_ctx, client_a, create_project, create_payment
):
    project = await create_project(client_a)
    payment = await create_payment(project, "100.00", status=PaymentStatus.PENDING)

    with pytest.raises(InvalidTransitionError):
        await payments_service.update_settlement_status(
            db_session, ctx=admin_ctx, payment_id=payment.id, status=PaymentStatus.REFUNDED
        )

    completed = await payments_service.update_settlement_status(
        db_session, ctx=admin_ctx, payment_id=payment.id, status=PaymentStatus.COMPLETED
    )
    assert completed.status == PaymentStatus.COMPLETED.value

    refunded = await payments_service.update_settlement_status(
        db_session, ctx=admin_ctx, payment_id=payment.id, status=PaymentStatus.REFUNDED
    )
    assert refunded.status == PaymentStatus.REFUNDED.value


@pytest.mark.asyncio
async def test_service_list_payments_scoped_to_client(
    db_session: AsyncSession, ctx_a, client_a, client_b, create_project, create_payment
):
    own = await create_project(client_a)
    other = await create_project(client_b)
    await create_payment(own, "10.00")
    await create_payment(other, "20.00")

    payments = await payments_service.list_payments(db_session, ctx=ctx_a)

    assert [p.project_id for p in payments] == [own.id]


@pytest.mark.asyncio
async def test_service_payment_methods(db_session: AsyncSession, admin_ctx, ctx_a):
    await payments_service.create_payment_method(
        db_session, ctx=admin_ctx, payload=PaymentMethodCreate(name="Bank transfer")
    )

    with pytest.raises(QueryError):
        await payments_service.create_payment_method(
            db_session, ctx=admin_ctx, payload=PaymentMethodCreate(name="Bank transfer")
        )
    with pytest.raises(PermissionDenied):
        await payments_service.create_payment_method(
            db_session, ctx=ctx_a, payload=PaymentMethodCreate(name="Card")
        )

    methods = await payments_service.list_payment_methods(db_session, ctx=ctx_a)
    assert [m.name for m in methods] == ["Bank transfer"]

"""Checkout creation and reconciliation against SQLite with the Stripe SDK patched."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest
import stripe
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from headshot_api.schemas.billing import ReconcileStatus
from headshot_api.services.checkout_service import CheckoutService
from headshot_api.services.credit_ledger_service import CreditLedgerService
from headshot_api.services.payment_service import PaymentService
from headshot_common.core.app_error import AppException, Errors
from headshot_common.core.config_service import config_service
from headshot_common.ids import UserId
from headshot_db.crud.payments import PurchaseDAO
from headshot_db.crud.reservation import CreditReservationDAO
from headshot_db.crud.user import UserDAO
from headshot_db.models.payments import PurchaseStatus

USER = UserId("checkout-user")
EMAIL = "buyer@example.com"


@pytest.fixture
def ledger(user_dao: UserDAO, reservation_dao: CreditReservationDAO) -> CreditLedgerService:
    return CreditLedgerService(user_dao, reservation_dao)


@pytest.fixture
def purchase_dao() -> PurchaseDAO:
    return PurchaseDAO()


@pytest.fixture
def checkout_service(ledger: CreditLedgerService, purchase_dao: PurchaseDAO) -> CheckoutService:
    return CheckoutService(config_service, PaymentService(purchase_dao, ledger))


def paid_session(session_id: str = "cs_test_1", **overrides: Any) -> dict[str, Any]:
    session: dict[str, Any] = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": "paid",
        "status": "complete",
        "payment_intent": "pi_test_1",
        "amount_total": 3500,
        "customer_email": EMAIL,
        "customer_details": {"email": EMAIL},
        "metadata": {
            "user_id": USER,
            "credits": "40",
            "amount": "35",
            "package_name": "40 Credits Package",
            "user_email": EMAIL,
        },
    }
    session.update(overrides)
    return session


class TestCreateCheckoutSession:
    @pytest.mark.asyncio
    async def test_builds_session_and_records_pending_purchase(
        self,
        db: AsyncSession,
        ledger: CreditLedgerService,
        checkout_service: CheckoutService,
        purchase_dao: PurchaseDAO,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        create = MagicMock(return_value=MagicMock(id="cs_new", url="https://checkout.stripe.com/c/pay/cs_new"))
        monkeypatch.setattr(stripe.checkout.Session, "create", create)

        result = await checkout_service.create_checkout_session(db, user_id=USER, credits=40, amount=35, user_email=EMAIL)

        assert result.session_id == "cs_new"
        assert result.url == "https://checkout.stripe.com/c/pay/cs_new"
        kwargs = create.call_args.kwargs
        line_item = kwargs["line_items"][0]
        assert line_item["price_data"]["unit_amount"] == 3500
        assert line_item["price_data"]["currency"] == "usd"
        assert line_item["price_data"]["product_data"]["name"] == "40 AI Headshot Credits"
        assert line_item["price_data"]["product_data"]["description"] == "Generate 40 professional AI headshots"
        assert kwargs["mode"] == "payment"
        assert kwargs["payment_method_types"] == ["card"]
        assert "session_id={CHECKOUT_SESSION_ID}" in kwargs["success_url"]
        assert "redirect=dashboard" in kwargs["success_url"]
        assert kwargs["cancel_url"] == "http://localhost:5173/pricing"
        assert kwargs["customer_email"] == EMAIL
        assert kwargs["allow_promotion_codes"] is True
        assert kwargs["metadata"] == {
            "user_id": USER,
            "credits": "40",
            "amount": "35",
            "package_name": "40 Credits Package",
            "user_email": EMAIL,
        }

        pending = await purchase_dao.get_by_session_id(db, stripe_session_id="cs_new")
        assert pending is not None
        assert pending.status == PurchaseStatus.PENDING
        assert pending.amount_paid == 3500

    @pytest.mark.asyncio
    async def test_provider_rejection(self, db: AsyncSession, checkout_service: CheckoutService, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(stripe.checkout.Session, "create", MagicMock(side_effect=stripe.APIConnectionError("network down")))

        with pytest.raises(AppException) as exc_info:
            await checkout_service.create_checkout_session(db, user_id=USER, credits=40, amount=35, user_email=EMAIL)

        assert Errors.Billing.CHECKOUT_CREATION_FAILED.is_(exc_info.value)
        assert exc_info.value.retryable

    def test_pack_catalog(self, checkout_service: CheckoutService) -> None:
        packs = {pack.id: pack for pack in checkout_service.get_packs()}

        assert (packs["starter"].credits, packs["starter"].price) == (40, 35)
        assert (packs["popular"].credits, packs["popular"].price, packs["popular"].popular) == (60, 45, True)
        assert (packs["pro"].credits, packs["pro"].price) == (100, 75)
        with pytest.raises(AppException) as exc_info:
            checkout_service.get_pack("enterprise")
        assert Errors.Billing.INVALID_PACK.is_(exc_info.value)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_twice_grants_once(
        self,
        db: AsyncSession,
        ledger: CreditLedgerService,
        checkout_service: CheckoutService,
        purchase_dao: PurchaseDAO,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=paid_session()))

        first = await checkout_service.reconcile(db, "cs_test_1")
        second = await checkout_service.reconcile(db, "cs_test_1")

        assert first.status == ReconcileStatus.RECONCILED
        assert first.credited is True
        assert first.new_balance == 46
        assert second.status == ReconcileStatus.RECONCILED
        assert second.credited is False
        assert second.credits_added == 0
        assert second.new_balance == 46
        assert await ledger.get_balance(db, USER) == 46

        purchase = await purchase_dao.get_by_session_id(db, stripe_session_id="cs_test_1")
        assert purchase is not None
        assert purchase.status == PurchaseStatus.COMPLETED
        assert purchase.credits_purchased == 40
        assert purchase.amount_paid == 3500
        assert purchase.stripe_payment_intent_id == "pi_test_1"

    @pytest.mark.asyncio
    async def test_reconcile_completes_pending_purchase(
        self,
        db: AsyncSession,
        ledger: CreditLedgerService,
        checkout_service: CheckoutService,
        purchase_dao: PurchaseDAO,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        await checkout_service.payment_service.record_pending(db, user_id=USER, stripe_session_id="cs_test_1", credits=40, amount_paid=3500)
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=paid_session()))

        result = await checkout_service.reconcile(db, "cs_test_1")

        assert result.credited is True
        assert await ledger.get_balance(db, USER) == 46
        purchases = await purchase_dao.list_for_user(db, USER)
        assert len(purchases) == 1
        assert purchases[0].status == PurchaseStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unpaid_session_is_not_an_error(
        self, db: AsyncSession, ledger: CreditLedgerService, checkout_service: CheckoutService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=paid_session(payment_status="unpaid", status="open")))

        result = await checkout_service.reconcile(db, "cs_test_1")

        assert result.status == ReconcileStatus.NOT_PAID
        assert result.payment_status == "unpaid"
        assert await ledger.get_balance(db, USER) == 6

    @pytest.mark.asyncio
    async def test_expired_session_fails_pending_purchase(
        self,
        db: AsyncSession,
        ledger: CreditLedgerService,
        checkout_service: CheckoutService,
        purchase_dao: PurchaseDAO,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        await checkout_service.payment_service.record_pending(db, user_id=USER, stripe_session_id="cs_test_1", credits=40, amount_paid=3500)
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=paid_session(payment_status="unpaid", status="expired")))

        result = await checkout_service.reconcile(db, "cs_test_1")

        assert result.status == ReconcileStatus.NOT_PAID
        purchase = await purchase_dao.get_by_session_id(db, stripe_session_id="cs_test_1")
        assert purchase is not None
        assert purchase.status == PurchaseStatus.FAILED

    @pytest.mark.asyncio
    async def test_session_of_another_user_is_forbidden(
        self, db: AsyncSession, ledger: CreditLedgerService, checkout_service: CheckoutService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await ledger.initialize(db, USER, EMAIL)
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=paid_session()))

        with pytest.raises(AppException) as exc_info:
            await checkout_service.reconcile(db, "cs_test_1", expected_user_id=UserId("someone-else"))

        assert Errors.Billing.SESSION_FORBIDDEN.is_(exc_info.value)
        assert await ledger.get_balance(db, USER) == 6

    @pytest.mark.asyncio
    async def test_provider_error(self, db: AsyncSession, checkout_service: CheckoutService, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(side_effect=stripe.APIConnectionError("timeout")))

        with pytest.raises(AppException) as exc_info:
            await checkout_service.reconcile(db, "cs_test_1")

        assert Errors.Billing.RECONCILIATION_FAILED.is_(exc_info.value)


class TestConcurrentDelivery:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("with_pending", [True, False], ids=["pending-row", "metadata-only"])
    async def test_racing_triggers_credit_once(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: CreditLedgerService,
        purchase_dao: PurchaseDAO,
        with_pending: bool,
    ) -> None:
        payment_service = PaymentService(purchase_dao, ledger)
        async with session_factory() as session:
            await ledger.initialize(session, USER, EMAIL)
            if with_pending:
                await payment_service.record_pending(session, user_id=USER, stripe_session_id="cs_test_1", credits=40, amount_paid=3500)

        async def deliver() -> bool:
            async with session_factory() as session:
                result = await payment_service.credit_purchase_once(
                    session,
                    user_id=USER,
                    stripe_session_id="cs_test_1",
                    payment_intent_id="pi_test_1",
                    credits=40,
                    amount_paid=3500,
                )
                assert result.new_balance == 46
                return result.credited

        results = await asyncio.gather(*(deliver() for _ in range(5)))

        assert results.count(True) == 1
        assert results.count(False) == 4
        async with session_factory() as session:
            assert await ledger.get_balance(session, USER) == 46
            purchases = await purchase_dao.list_for_user(session, USER)
        assert len(purchases) == 1
        assert purchases[0].status == PurchaseStatus.COMPLETED
        assert purchases[0].stripe_payment_intent_id == "pi_test_1"

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from apps.orders.models import Order
from apps.payouts.models import BankDetails, Payout, PayoutRequest, calculate_balance

pytestmark = pytest.mark.django_db

BANK = {
    "account_holder_name": "Main Canteen Pvt Ltd",
    "account_number": "123456789012",
    "confirm_account_number": "123456789012",
    "ifsc_code": "hdfc0001234",
    "bank_name": "HDFC Bank",
    "branch_name": "Connaught Place",
}


@pytest.fixture
def earnings(student, canteen, item, make_order):
    """Two completed, paid orders worth Rs. 1200 each."""
    for _ in range(2):
        order = make_order(student, canteen, [(item, 20)], status=Order.STATUS_COMPLETED)
        order.payment_status = Order.PAYMENT_STATUS_PAID
        order.save(update_fields=["payment_status"])


@pytest.fixture
def verified_bank(canteen, vendor, admin_user):
    bank = BankDetails.objects.create(
        canteen=canteen,
        owner=vendor,
        account_holder_name="Main Canteen Pvt Ltd",
        account_number="123456789012",
        ifsc_code="HDFC0001234",
        bank_name="HDFC Bank",
        branch_name="Connaught Place",
        is_verified=True,
        verified_by=admin_user,
    )
    return bank


@pytest.fixture
def payout_request(client_for, vendor, earnings, verified_bank):
    response = client_for(vendor).post("/api/payouts/request/", {"requested_amount": "1000.00"}, format="json")
    assert response.status_code == 201
    return PayoutRequest.objects.get(id=response.json()["data"]["id"])


class TestBalance:
    def test_balance_deducts_platform_fee_and_payouts(self, canteen, earnings, vendor):
        PayoutRequest.objects.create(
            canteen=canteen, vendor=vendor, requested_amount=Decimal("500"),
            available_balance=Decimal("2280"), status=PayoutRequest.STATUS_COMPLETED,
        )

        totals = calculate_balance(canteen)

        assert totals["totalEarnings"] == Decimal("2400.00")
        assert totals["platformFee"] == Decimal("120.00")
        assert totals["totalPayouts"] == Decimal("500")
        assert totals["availableBalance"] == Decimal("1780.00")
        canteen.refresh_from_db()
        assert canteen.available_balance == Decimal("1780.00")

    def test_unpaid_orders_do_not_count(self, canteen, student, item, make_order):
        make_order(student, canteen, [(item, 5)], status=Order.STATUS_COMPLETED)

        assert calculate_balance(canteen)["availableBalance"] == Decimal("0.00")

    def test_balance_endpoint(self, client_for, vendor, earnings):
        response = client_for(vendor).get("/api/payouts/balance/")

        data = response.json()["data"]
        assert data["balance"]["availableBalance"] == 2280.0
        assert data["statistics"]["totalOrders"] == 2

    def test_students_are_refused(self, client_for, student):
        assert client_for(student).get("/api/payouts/balance/").status_code == 403


class TestBankDetails:
    def test_one_live_row_per_canteen(self, verified_bank, canteen, vendor):
        with pytest.raises(IntegrityError), transaction.atomic():
            BankDetails.objects.create(
                canteen=canteen, owner=vendor, account_holder_name="Other", account_number="999999999",
                ifsc_code="SBIN0000001", bank_name="SBI", branch_name="Delhi",
            )

        verified_bank.is_deleted = True
        verified_bank.save()
        BankDetails.objects.create(
            canteen=canteen, owner=vendor, account_holder_name="Other", account_number="999999999",
            ifsc_code="SBIN0000001", bank_name="SBI", branch_name="Delhi",
        )
        assert BankDetails.objects.filter(canteen=canteen).count() == 2

    def test_save_masks_account_and_awaits_verification(self, client_for, vendor, canteen, admin_user):
        response = client_for(vendor).put("/api/payouts/bank-details/", BANK, format="json")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["account_number"] == "****9012"
        assert data["ifsc_code"] == "HDFC0001234"
        assert data["is_verified"] is False
        assert admin_user.notifications.filter(title="Bank details submitted").exists()

    def test_account_numbers_must_match(self, client_for, vendor, canteen):
        response = client_for(vendor).put(
            "/api/payouts/bank-details/", {**BANK, "confirm_account_number": "000000000000"}, format="json"
        )

        assert response.status_code == 400
        assert "confirm_account_number" in response.json()["errors"]

    def test_invalid_ifsc(self, client_for, vendor, canteen):
        response = client_for(vendor).put("/api/payouts/bank-details/", {**BANK, "ifsc_code": "HDFC1234"}, format="json")

        assert response.status_code == 400

    def test_update_resets_verification(self, client_for, vendor, verified_bank):
        client_for(vendor).put("/api/payouts/bank-details/", {**BANK, "bank_name": "ICICI Bank"}, format="json")

        verified_bank.refresh_from_db()
        assert verified_bank.bank_name == "ICICI Bank"
        assert verified_bank.is_verified is False

    def test_admin_verifies(self, client_for, admin_user, vendor, canteen):
        client_for(vendor).put("/api/payouts/bank-details/", BANK, format="json")
        bank = BankDetails.objects.get(canteen=canteen)

        response = client_for(admin_user).post(
            f"/api/payouts/admin/bank-details/{bank.id}/verify/", {"verified": True}, format="json"
        )

        assert response.status_code == 200
        bank.refresh_from_db()
        assert bank.is_verified is True
        assert bank.verified_by == admin_user

    def test_soft_delete(self, client_for, vendor, verified_bank):
        client = client_for(vendor)

        assert client.delete("/api/payouts/bank-details/").status_code == 200
        assert client.get("/api/payouts/bank-details/").status_code == 404


class TestPayoutRequests:
    def test_request_snapshots_bank_details(self, payout_request, admin_user):
        assert payout_request.status == PayoutRequest.STATUS_PENDING
        assert payout_request.available_balance == Decimal("2280.00")
        assert payout_request.bank_details["accountNumber"] == "****9012"
        assert admin_user.notifications.filter(title="New payout request").exists()

    def test_minimum_amount(self, client_for, vendor, earnings, verified_bank):
        response = client_for(vendor).post("/api/payouts/request/", {"requested_amount": "50"}, format="json")

        assert response.status_code == 400
        assert "Minimum payout amount" in str(response.json()["errors"])

    def test_insufficient_balance(self, client_for, vendor, earnings, verified_bank):
        response = client_for(vendor).post("/api/payouts/request/", {"requested_amount": "5000"}, format="json")

        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient balance"
        assert response.json()["availableBalance"] == 2280.0

    def test_unverified_bank_details(self, client_for, vendor, earnings, verified_bank):
        verified_bank.is_verified = False
        verified_bank.save()

        response = client_for(vendor).post("/api/payouts/request/", {"requested_amount": "500"}, format="json")

        assert response.status_code == 400

    def test_one_open_request_at_a_time(self, client_for, vendor, payout_request):
        response = client_for(vendor).post("/api/payouts/request/", {"requested_amount": "100"}, format="json")

        assert response.status_code == 400

    def test_history_summary(self, client_for, vendor, payout_request):
        response = client_for(vendor).get("/api/payouts/history/")

        data = response.json()["data"]
        assert data["summary"]["total"] == 1
        assert data["summary"]["pending"] == 1
        assert data["pagination"]["totalRecords"] == 1


class TestAdminReview:
    def test_reject_uses_default_reason(self, client_for, admin_user, payout_request):
        response = client_for(admin_user).post(
            f"/api/payouts/admin/requests/{payout_request.id}/review/", {"action": "reject"}, format="json"
        )

        assert response.status_code == 200
        payout_request.refresh_from_db()
        assert payout_request.status == PayoutRequest.STATUS_REJECTED
        assert payout_request.rejection_reason == "Request rejected by admin"

    def test_only_approved_requests_are_processed(self, client_for, admin_user, payout_request):
        response = client_for(admin_user).post(
            f"/api/payouts/admin/requests/{payout_request.id}/process/", {"transaction_id": "UTR123"}, format="json"
        )

        assert response.status_code == 400

    def test_approve_then_process(self, client_for, admin_user, payout_request, canteen):
        client = client_for(admin_user)
        client.post(f"/api/payouts/admin/requests/{payout_request.id}/review/", {"action": "approve"}, format="json")

        response = client.post(
            f"/api/payouts/admin/requests/{payout_request.id}/process/",
            {"transaction_id": "UTR123", "notes": "NEFT"},
            format="json",
        )

        assert response.status_code == 200
        payout_request.refresh_from_db()
        assert payout_request.status == PayoutRequest.STATUS_COMPLETED
        assert payout_request.transaction_id == "UTR123"
        assert Payout.objects.get(request=payout_request).amount == Decimal("1000.00")
        canteen.refresh_from_db()
        assert canteen.available_balance == Decimal("1280.00")

    def test_reviewing_twice(self, client_for, admin_user, payout_request):
        client = client_for(admin_user)
        url = f"/api/payouts/admin/requests/{payout_request.id}/review/"
        client.post(url, {"action": "approve"}, format="json")

        assert client.post(url, {"action": "reject"}, format="json").status_code == 400

    def test_vendors_cannot_review(self, client_for, vendor, payout_request):
        response = client_for(vendor).post(
            f"/api/payouts/admin/requests/{payout_request.id}/review/", {"action": "approve"}, format="json"
        )

        assert response.status_code == 403

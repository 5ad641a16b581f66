import pytest
import requests

from apps.orders.models import Order
from apps.payments.gateway import PaymentGatewayError, RazorpayGateway
from apps.payments.models import Transaction

from .helpers import payment_signature

pytestmark = pytest.mark.django_db


@pytest.fixture
def order(student, canteen, item, make_order):
    return make_order(student, canteen, [(item, 1)])


@pytest.fixture
def started(client_for, student, order, gateway):
    """A Razorpay order created through the API."""
    response = client_for(student).post("/api/payments/create-order/", {"order_id": str(order.id)}, format="json")
    assert response.status_code == 201
    return Transaction.objects.get(id=response.json()["data"]["transactionId"])


def verify(client, txn, payment_id="pay_test", signature=None):
    return client.post("/api/payments/verify/", {
        "razorpay_order_id": txn.razorpay_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or payment_signature(txn.razorpay_order_id, payment_id),
    }, format="json")


class TestCreatePaymentOrder:
    def test_creates_razorpay_order_in_paise(self, client_for, student, order, gateway):
        response = client_for(student).post(
            "/api/payments/create-order/", {"order_id": str(order.id)}, format="json"
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["amount"] == 6000
        assert data["currency"] == "INR"
        assert data["key"] == "rzp_test_key"
        assert data["method"] == "upi"
        order.refresh_from_db()
        assert order.status == Order.STATUS_PAYMENT_PENDING
        gateway.create_order.assert_called_once()

    def test_someone_elses_order(self, client_for, other_student, order, gateway):
        response = client_for(other_student).post(
            "/api/payments/create-order/", {"order_id": str(order.id)}, format="json"
        )

        assert response.status_code == 403
        gateway.create_order.assert_not_called()

    def test_already_placed_order(self, client_for, student, order, gateway):
        order.status = Order.STATUS_PLACED
        order.save()

        response = client_for(student).post(
            "/api/payments/create-order/", {"order_id": str(order.id)}, format="json"
        )

        assert response.status_code == 400

    def test_gateway_failure_is_502(self, client_for, student, order, gateway):
        gateway.create_order.side_effect = PaymentGatewayError("Failed to create payment order")

        response = client_for(student).post(
            "/api/payments/create-order/", {"order_id": str(order.id)}, format="json"
        )

        assert response.status_code == 502
        assert response.json() == {"success": False, "message": "Failed to create payment order"}
        assert not Transaction.objects.exists()


class TestVerify:
    def test_valid_signature_places_order(self, client_for, student, started):
        response = verify(client_for(student), started)

        assert response.status_code == 200
        started.refresh_from_db()
        assert started.status == Transaction.STATUS_PAID
        assert started.razorpay_payment_id == "pay_test"
        order = started.order
        order.refresh_from_db()
        assert order.status == Order.STATUS_PLACED
        assert order.payment_status == Order.PAYMENT_STATUS_PAID
        assert order.canteen.owner.notifications.filter(title="New order received").exists()

    def test_verify_is_idempotent(self, client_for, student, started):
        client = client_for(student)
        verify(client, started)

        response = verify(client, started)

        assert response.status_code == 200
        assert response.json()["message"] == "Payment already verified"

    def test_invalid_signature(self, client_for, student, started):
        response = verify(client_for(student), started, signature="0" * 64)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid payment signature"
        started.refresh_from_db()
        assert started.status == Transaction.STATUS_FAILED

    def test_card_payments_are_refused(self, client_for, student, started, gateway):
        gateway.fetch_payment.return_value = {"id": "pay_test", "method": "card"}

        response = verify(client_for(student), started)

        assert response.status_code == 400
        started.refresh_from_db()
        assert started.status == Transaction.STATUS_FAILED
        assert started.failure_reason == "Invalid payment method"


class TestFailure:
    def test_failure_returns_order_to_pending(self, client_for, student, started):
        response = client_for(student).post("/api/payments/failure/", {
            "razorpay_order_id": started.razorpay_order_id,
            "error": {"description": "UPI app declined"},
        }, format="json")

        assert response.status_code == 200
        assert response.json()["data"]["reason"] == "UPI app declined"
        order = Order.objects.get(id=started.order_id)
        assert order.status == Order.STATUS_PENDING
        assert order.payment_status == Order.PAYMENT_STATUS_FAILED

    def test_failure_after_payment(self, client_for, student, started):
        client = client_for(student)
        verify(client, started)

        response = client.post("/api/payments/failure/", {"razorpay_order_id": started.razorpay_order_id}, format="json")

        assert response.status_code == 400


class TestRefunds:
    def test_refund_paid_transaction(self, client_for, student, started, gateway):
        client = client_for(student)
        verify(client, started)

        response = client.post(f"/api/payments/transactions/{started.id}/refund/", {"reason": "Changed my mind"},
                               format="json")

        assert response.status_code == 200
        assert response.json()["data"]["refundId"] == "rfnd_test1"
        started.refresh_from_db()
        assert started.refund_status == Transaction.REFUND_PENDING
        assert started.refund_reason == "Changed my mind"
        args = gateway.refund_payment.call_args[0]
        assert args[:2] == ("pay_test", 6000)

    def test_cannot_refund_twice(self, client_for, student, started):
        client = client_for(student)
        verify(client, started)
        client.post(f"/api/payments/transactions/{started.id}/refund/", format="json")

        response = client.post(f"/api/payments/transactions/{started.id}/refund/", format="json")

        assert response.status_code == 400
        assert response.json()["details"]["refundInProgress"] is True

    def test_refund_status_falls_back_to_local(self, client_for, student, started, gateway):
        client = client_for(student)
        verify(client, started)
        client.post(f"/api/payments/transactions/{started.id}/refund/", format="json")
        gateway.fetch_refund.side_effect = PaymentGatewayError("Failed to fetch refund")

        response = client.get(f"/api/payments/transactions/{started.id}/refund/")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == Transaction.REFUND_PENDING
        assert "note" in data


class TestCashOnDelivery:
    def test_cod_places_order(self, client_for, student, order):
        response = client_for(student).post("/api/payments/cod/", {"order_id": str(order.id)}, format="json")

        assert response.status_code == 201
        order.refresh_from_db()
        assert order.status == Order.STATUS_PLACED
        assert order.payment_status == Order.PAYMENT_STATUS_COD
        assert order.transactions.get().payment_method == Transaction.METHOD_COD

    def test_cod_settles_on_completion(self, client_for, student, vendor, order):
        client_for(student).post("/api/payments/cod/", {"order_id": str(order.id)}, format="json")

        client_for(vendor).patch(f"/api/orders/{order.id}/status/", {"status": "completed"}, format="json")

        order.refresh_from_db()
        assert order.payment_status == Order.PAYMENT_STATUS_PAID
        assert order.transactions.get().status == Transaction.STATUS_PAID


class TestTransactions:
    def test_list_only_own(self, client_for, student, other_student, started):
        assert client_for(other_student).get("/api/payments/transactions/").json()["data"]["transactions"] == []
        response = client_for(student).get("/api/payments/transactions/")
        assert response.json()["data"]["pagination"]["totalTransactions"] == 1

    def test_detail_is_private(self, client_for, other_student, started):
        response = client_for(other_student).get(f"/api/payments/transactions/{started.id}/")

        assert response.status_code == 403


class TestGateway:
    def test_transport_errors_become_gateway_errors(self):
        gateway = RazorpayGateway()

        def boom(*args, **kwargs):
            raise requests.ConnectionError("down")

        with pytest.raises(PaymentGatewayError):
            gateway._call("fetch payment", boom)

    def test_unconfigured_client(self):
        gateway = RazorpayGateway()
        gateway.key_secret = ""

        with pytest.raises(PaymentGatewayError):
            gateway.client

    def test_payment_signature(self):
        gateway = RazorpayGateway()

        assert gateway.verify_payment_signature("order_1", "pay_1", payment_signature("order_1", "pay_1"))
        assert not gateway.verify_payment_signature("order_1", "pay_1", "bad")

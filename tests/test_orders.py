from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.canteens.models import Canteen, Item
from apps.orders.models import Order, OrderHistory, Penalty
from apps.payments.models import Transaction

pytestmark = pytest.mark.django_db


def order_payload(canteen, items, pickup_time):
    return {
        "canteen_id": canteen.id,
        "pickup_time": pickup_time.isoformat(),
        "items": [{"id": item.id, "quantity": quantity} for item, quantity in items],
    }


class TestCreateOrder:
    def test_student_places_order(self, client_for, student, canteen, item, second_item, pickup_time):
        response = client_for(student).post(
            "/api/orders/", order_payload(canteen, [(item, 2), (second_item, 1)], pickup_time), format="json"
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["total"] == 145.5
        assert data["status"] == Order.STATUS_PENDING
        assert data["order_number"].startswith("order#")

    def test_prices_are_snapshotted(self, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)])
        item.price = Decimal("99.00")
        item.save()

        line = order.items.get()
        assert line.price_at_purchase == Decimal("60.00")
        assert line.name_at_purchase == "Masala Dosa"

    def test_order_numbers_increase(self, student, canteen, item, make_order):
        first = make_order(student, canteen, [(item, 1)])
        second = make_order(student, canteen, [(item, 1)])

        assert int(second.order_number.split("#")[1]) == int(first.order_number.split("#")[1]) + 1

    def test_pickup_lead_time(self, client_for, student, canteen, item):
        too_soon = timezone.now() + timedelta(minutes=5)

        response = client_for(student).post(
            "/api/orders/", order_payload(canteen, [(item, 1)], too_soon), format="json"
        )

        assert response.status_code == 400
        assert "10 minutes" in response.json()["message"]

    def test_other_campus_is_forbidden(self, client_for, make_user, other_campus, canteen, item, pickup_time):
        outsider = make_user(campus=other_campus)

        response = client_for(outsider).post(
            "/api/orders/", order_payload(canteen, [(item, 1)], pickup_time), format="json"
        )

        assert response.status_code == 403

    def test_closed_canteen(self, client_for, student, canteen, item, pickup_time):
        canteen.is_open = False
        canteen.save()

        response = client_for(student).post(
            "/api/orders/", order_payload(canteen, [(item, 1)], pickup_time), format="json"
        )

        assert response.status_code == 400

    def test_unavailable_item(self, client_for, student, canteen, item, pickup_time):
        item.available = False
        item.save()

        response = client_for(student).post(
            "/api/orders/", order_payload(canteen, [(item, 1)], pickup_time), format="json"
        )

        assert response.status_code == 400
        assert "unavailable" in response.json()["message"]

    def test_vendors_cannot_order(self, client_for, vendor, canteen, item, pickup_time):
        response = client_for(vendor).post(
            "/api/orders/", order_payload(canteen, [(item, 1)], pickup_time), format="json"
        )

        assert response.status_code == 403


class TestListing:
    def test_student_list_hides_unpaid_drafts(self, client_for, student, canteen, item, make_order):
        make_order(student, canteen, [(item, 1)])
        placed = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)

        response = client_for(student).get("/api/orders/")

        data = response.json()["data"]
        assert [o["id"] for o in data["orders"]] == [str(placed.id)]
        assert data["pagination"]["totalOrders"] == 1

    def test_canteen_list_shows_placed_orders(self, client_for, vendor, student, canteen, item, make_order):
        make_order(student, canteen, [(item, 1)], status=Order.STATUS_PAYMENT_PENDING)
        placed = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)

        response = client_for(vendor).get("/api/orders/canteen/")

        assert [o["id"] for o in response.json()["data"]["orders"]] == [str(placed.id)]

    def test_detail_is_private(self, client_for, student, other_student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)])

        assert client_for(other_student).get(f"/api/orders/{order.id}/").status_code == 403
        response = client_for(student).get(f"/api/orders/{order.id}/")
        assert response.status_code == 200
        assert "history" in response.json()["data"]


class TestStatusUpdates:
    def test_vendor_moves_order_forward(self, client_for, vendor, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)
        client = client_for(vendor)

        for new_status in [Order.STATUS_PREPARING, Order.STATUS_READY, Order.STATUS_COMPLETED]:
            response = client.patch(f"/api/orders/{order.id}/status/", {"status": new_status}, format="json")
            assert response.status_code == 200

        order.refresh_from_db()
        assert order.status == Order.STATUS_COMPLETED
        assert order.completed_at is not None
        assert OrderHistory.objects.filter(order=order).count() == 3
        assert student.notifications.filter(notification_type="order_status").count() == 3

    def test_vendor_cannot_go_backwards(self, client_for, vendor, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_READY)

        response = client_for(vendor).patch(
            f"/api/orders/{order.id}/status/", {"status": Order.STATUS_PREPARING}, format="json"
        )

        assert response.status_code == 400

    def test_student_can_only_cancel(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)

        response = client_for(student).patch(
            f"/api/orders/{order.id}/status/", {"status": Order.STATUS_COMPLETED}, format="json"
        )

        assert response.status_code == 403

    def test_cancelled_orders_are_final(self, client_for, vendor, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_CANCELLED)

        response = client_for(vendor).patch(
            f"/api/orders/{order.id}/status/", {"status": Order.STATUS_PREPARING}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot update a cancelled order"

    def test_early_cancel_has_no_penalty(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)

        response = client_for(student).patch(
            f"/api/orders/{order.id}/status/", {"status": Order.STATUS_CANCELLED}, format="json"
        )

        assert response.status_code == 200
        assert "penalty" not in response.json()["data"]
        assert not Penalty.objects.exists()
        assert order.canteen.owner.notifications.filter(notification_type="order_cancelled").exists()

    def test_late_cancel_penalty_carries_to_next_order(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PREPARING)
        client = client_for(student)

        response = client.patch(f"/api/orders/{order.id}/status/", {"status": Order.STATUS_CANCELLED}, format="json")

        assert response.json()["data"]["penalty"] == 30.0
        penalty = Penalty.objects.get()
        assert penalty.amount == Decimal("30")
        assert penalty.device_id

        next_order = make_order(student, canteen, [(item, 1)], device_id=penalty.device_id)
        assert next_order.penalty_amount == Decimal("30.00")
        assert next_order.total == Decimal("90.00")
        penalty.refresh_from_db()
        assert penalty.applied_to == next_order

    def test_completion_settles_penalty(self, client_for, vendor, student, canteen, item, make_order):
        cancelled = make_order(student, canteen, [(item, 1)], status=Order.STATUS_CANCELLED)
        penalty = Penalty.objects.create(
            device_id="device-1", user=student, order=cancelled, canteen=canteen, amount=Decimal("30")
        )
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_READY, device_id="device-1")

        client_for(vendor).patch(f"/api/orders/{order.id}/status/", {"status": Order.STATUS_COMPLETED}, format="json")

        penalty.refresh_from_db()
        assert penalty.is_paid is True

    def test_cancel_leaves_paid_transactions_refundable(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PLACED)
        paid = Transaction.objects.create(
            order=order, user=student, amount=order.total, status=Transaction.STATUS_PAID,
            razorpay_order_id="order_paid", razorpay_payment_id="pay_1",
        )
        stale = Transaction.objects.create(
            order=order, user=student, amount=order.total, razorpay_order_id="order_stale",
        )

        client_for(student).patch(f"/api/orders/{order.id}/status/", {"status": Order.STATUS_CANCELLED}, format="json")

        paid.refresh_from_db()
        stale.refresh_from_db()
        assert paid.status == Transaction.STATUS_PAID
        assert stale.status == Transaction.STATUS_CANCELLED


class TestDeletion:
    def test_active_orders_cannot_be_deleted(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_PREPARING)

        response = client_for(student).delete(f"/api/orders/{order.id}/")

        assert response.status_code == 400

    def test_soft_delete_moves_to_deleted_list(self, client_for, student, canteen, item, make_order):
        order = make_order(student, canteen, [(item, 1)], status=Order.STATUS_COMPLETED)
        client = client_for(student)

        assert client.delete(f"/api/orders/{order.id}/").status_code == 200
        assert client.get("/api/orders/").json()["data"]["orders"] == []
        deleted = client.get("/api/orders/deleted/").json()["data"]
        assert [o["id"] for o in deleted] == [str(order.id)]


class TestRecommendations:
    def test_personal_campus_and_global_rankings(
        self, client_for, student, other_student, make_user, other_campus, admin_user, canteen, item, second_item,
        make_order,
    ):
        make_order(student, canteen, [(item, 1)], status=Order.STATUS_COMPLETED)
        make_order(other_student, canteen, [(second_item, 3)], status=Order.STATUS_PLACED)

        far_owner = make_user(role="canteen", campus=other_campus)
        far_canteen = Canteen.objects.create(name="South Cafe", campus=other_campus, owner=far_owner)
        far_canteen.approve(admin_user)
        far_item = Item.objects.create(name="Idli", price=Decimal("30.00"), canteen=far_canteen)
        make_order(make_user(campus=other_campus), far_canteen, [(far_item, 5)], status=Order.STATUS_COMPLETED)

        response = client_for(student).get("/api/orders/recommendations/")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [i["name"] for i in data["personalItems"]] == ["Masala Dosa"]
        assert [i["name"] for i in data["trendingCampusItems"]] == ["Filter Coffee", "Masala Dosa"]
        assert [i["name"] for i in data["globalTopItems"]] == ["Idli", "Filter Coffee", "Masala Dosa"]
        assert data["globalTopItems"][0]["orderedQuantity"] == 5

    def test_unplaced_and_cancelled_orders_are_ignored(self, client_for, student, canteen, item, make_order):
        make_order(student, canteen, [(item, 2)])
        make_order(student, canteen, [(item, 2)], status=Order.STATUS_CANCELLED)

        response = client_for(student).get("/api/orders/recommendations/")

        assert response.json()["data"]["personalItems"] == []

    def test_people_also_ordered(self, client_for, student, other_student, canteen, item, second_item, make_order):
        samosa = Item.objects.create(name="Samosa", price=Decimal("15.00"), canteen=canteen)
        make_order(student, canteen, [(item, 1), (second_item, 2)], status=Order.STATUS_COMPLETED)
        make_order(other_student, canteen, [(item, 1), (samosa, 1)], status=Order.STATUS_PLACED)
        make_order(other_student, canteen, [(samosa, 4)], status=Order.STATUS_PLACED)

        response = client_for(student).get(f"/api/orders/also-ordered/{item.id}/")

        assert response.status_code == 200
        assert [(i["name"], i["orderedQuantity"]) for i in response.json()["data"]] == [
            ("Filter Coffee", 2),
            ("Samosa", 1),
        ]

from decimal import Decimal

import pytest

from apps.canteens.models import Campus, CampusRequest, Canteen, Item, Review
from apps.orders.models import Order

pytestmark = pytest.mark.django_db


REGISTRATION = {
    "name": "Chai Point",
    "owner_name": "Ravi Kumar",
    "mobile": "9123456789",
    "aadhaar_number": "123412341234",
    "pan_number": "ABCDE1234F",
    "gst_number": "22ABCDE1234F1Z5",
    "fssai_license": "12345678901234",
    "opening_time": "09:00",
    "closing_time": "21:00",
    "operating_days": ["monday", "tuesday"],
}


class TestCampuses:
    def test_anyone_can_list(self, api_client, campus):
        response = api_client.get("/api/campuses/")

        assert response.status_code == 200
        assert [c["code"] for c in response.json()["data"]] == ["NC"]

    def test_detail_lists_approved_canteens(self, api_client, campus, canteen, make_user):
        Canteen.objects.create(name="Pending Canteen", campus=campus, owner=make_user(role="canteen"))

        response = api_client.get(f"/api/campuses/{campus.id}/")

        data = response.json()["data"]
        assert data["campus"]["code"] == "NC"
        assert [c["name"] for c in data["canteens"]] == ["Main Canteen"]

    def test_only_admin_creates(self, client_for, student, admin_user):
        payload = {"name": "East Campus", "code": "EC", "city": "Pune"}

        assert client_for(student).post("/api/campuses/", payload, format="json").status_code == 403
        response = client_for(admin_user).post("/api/campuses/", payload, format="json")
        assert response.status_code == 201


class TestCanteenRegistration:
    def test_vendor_registers_pending_canteen(self, client_for, make_user, campus):
        owner = make_user(role="canteen")

        response = client_for(owner).post("/api/canteens/", {**REGISTRATION, "campus": campus.id}, format="json")

        assert response.status_code == 201
        canteen = Canteen.objects.get(owner=owner)
        assert canteen.approval_status == Canteen.APPROVAL_PENDING

    def test_invalid_business_details(self, client_for, make_user, campus):
        owner = make_user(role="canteen")
        payload = {**REGISTRATION, "campus": campus.id, "pan_number": "12345", "operating_days": ["funday"]}

        response = client_for(owner).post("/api/canteens/", payload, format="json")

        assert response.status_code == 400
        errors = response.json()["errors"]
        assert "pan_number" in errors
        assert "operating_days" in errors

    def test_one_canteen_per_vendor(self, client_for, vendor, canteen, campus):
        response = client_for(vendor).post("/api/canteens/", {**REGISTRATION, "campus": campus.id}, format="json")

        assert response.status_code == 400

    def test_students_cannot_register(self, client_for, student, campus):
        response = client_for(student).post("/api/canteens/", {**REGISTRATION, "campus": campus.id}, format="json")

        assert response.status_code == 403

    def test_pending_canteens_are_hidden(self, api_client, canteen, make_user, campus):
        Canteen.objects.create(name="Waiting", campus=campus, owner=make_user(role="canteen"))

        response = api_client.get(f"/api/canteens/?campus={campus.id}")

        assert [c["name"] for c in response.json()["data"]] == ["Main Canteen"]

    def test_admin_approval_notifies_owner(self, client_for, admin_user, make_user, campus):
        owner = make_user(role="canteen")
        pending = Canteen.objects.create(name="Waiting", campus=campus, owner=owner)

        response = client_for(admin_user).post(
            f"/api/canteens/{pending.id}/approval/", {"action": "reject", "reason": "Missing FSSAI"}, format="json"
        )

        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.approval_status == Canteen.APPROVAL_REJECTED
        assert pending.rejection_reason == "Missing FSSAI"
        assert owner.notifications.filter(notification_type="canteen_approval").exists()


class TestItems:
    def test_vendor_adds_item(self, client_for, vendor, canteen):
        response = client_for(vendor).post(
            f"/api/canteens/{canteen.id}/items/", {"name": "Samosa", "price": "15.00"}, format="json"
        )

        assert response.status_code == 201
        assert canteen.items.get().price == Decimal("15.00")

    def test_unapproved_vendor_is_blocked(self, client_for, make_user, campus):
        owner = make_user(role="canteen")
        pending = Canteen.objects.create(name="Waiting", campus=campus, owner=owner)

        response = client_for(owner).post(
            f"/api/canteens/{pending.id}/items/", {"name": "Samosa", "price": "15.00"}, format="json"
        )

        assert response.status_code == 403
        assert response.json()["approvalStatus"] == Canteen.APPROVAL_PENDING

    def test_vendor_without_canteen_gets_404(self, client_for, make_user, canteen):
        response = client_for(make_user(role="canteen")).post(
            f"/api/canteens/{canteen.id}/items/", {"name": "Samosa", "price": "15.00"}, format="json"
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Canteen not found"

    def test_cannot_edit_other_canteens_items(self, client_for, make_user, campus, admin_user, item):
        rival = make_user(role="canteen")
        Canteen.objects.create(name="Rival", campus=campus, owner=rival).approve(admin_user)

        response = client_for(rival).patch(f"/api/items/{item.id}/", {"price": "1.00"}, format="json")

        assert response.status_code == 403

    def test_toggle_ready(self, client_for, vendor, item):
        response = client_for(vendor).post(f"/api/items/{item.id}/toggle-ready/")

        assert response.status_code == 200
        item.refresh_from_db()
        assert item.is_ready is True

    def test_soft_delete(self, client_for, vendor, item):
        response = client_for(vendor).delete(f"/api/items/{item.id}/")

        assert response.status_code == 200
        assert Item.objects.get(id=item.id).is_deleted is True


class TestReviews:
    def test_review_requires_completed_order(self, client_for, student, canteen):
        response = client_for(student).post(
            f"/api/canteens/{canteen.id}/reviews/", {"rating": 5}, format="json"
        )

        assert response.status_code == 400

    def test_review_updates_rating(self, client_for, student, other_student, canteen, item, make_order):
        for reviewer, rating in [(student, 5), (other_student, 2)]:
            make_order(reviewer, canteen, [(item, 1)], status=Order.STATUS_COMPLETED)
            response = client_for(reviewer).post(
                f"/api/canteens/{canteen.id}/reviews/", {"rating": rating, "comment": "ok"}, format="json"
            )
            assert response.status_code == 201

        canteen.refresh_from_db()
        assert canteen.total_reviews == 2
        assert canteen.average_rating == Decimal("3.50")

    def test_second_review_replaces_first(self, client_for, student, canteen, item, make_order):
        make_order(student, canteen, [(item, 1)], status=Order.STATUS_COMPLETED)
        client = client_for(student)
        client.post(f"/api/canteens/{canteen.id}/reviews/", {"rating": 1}, format="json")

        response = client.post(f"/api/canteens/{canteen.id}/reviews/", {"rating": 4}, format="json")

        assert response.status_code == 200
        assert Review.objects.get(user=student).rating == 4


class TestCampusManagement:
    def test_admin_updates_campus(self, client_for, admin_user, campus):
        response = client_for(admin_user).patch(f"/api/campuses/{campus.id}/", {"city": "Noida"}, format="json")

        assert response.status_code == 200
        campus.refresh_from_db()
        assert campus.city == "Noida"

    def test_students_cannot_edit(self, client_for, student, campus):
        response = client_for(student).patch(f"/api/campuses/{campus.id}/", {"city": "Noida"}, format="json")

        assert response.status_code == 403

    def test_delete_is_soft(self, client_for, admin_user, api_client, campus):
        response = client_for(admin_user).delete(f"/api/campuses/{campus.id}/")

        assert response.status_code == 200
        assert Campus.objects.get(id=campus.id).is_deleted is True
        assert api_client.get("/api/campuses/").json()["data"] == []


class TestCampusRequests:
    def test_vendor_requests_campus(self, client_for, make_user, admin_user):
        owner = make_user(role="canteen")

        response = client_for(owner).post(
            "/api/campuses/requests/", {"name": "West Campus", "code": "wc", "city": "Mumbai"}, format="json"
        )

        assert response.status_code == 201
        request = CampusRequest.objects.get()
        assert request.code == "WC"
        assert request.requested_by == owner
        assert admin_user.notifications.filter(notification_type="campus_request").exists()

    def test_existing_code_is_rejected(self, client_for, make_user, campus):
        response = client_for(make_user(role="canteen")).post(
            "/api/campuses/requests/", {"name": "North Again", "code": "NC"}, format="json"
        )

        assert response.status_code == 400
        assert "code" in response.json()["errors"]

    def test_students_cannot_request(self, client_for, student):
        response = client_for(student).post("/api/campuses/requests/", {"name": "X", "code": "X"}, format="json")

        assert response.status_code == 403

    def test_approval_creates_campus(self, client_for, make_user, admin_user):
        owner = make_user(role="canteen")
        pending = CampusRequest.objects.create(name="West Campus", code="WC", city="Mumbai", requested_by=owner)
        client = client_for(admin_user)

        assert [r["id"] for r in client.get("/api/campuses/requests/").json()["data"]] == [pending.id]
        response = client.post(f"/api/campuses/requests/{pending.id}/review/", {"action": "approve"}, format="json")

        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.status == CampusRequest.STATUS_APPROVED
        assert pending.campus == Campus.objects.get(code="WC")
        assert owner.notifications.filter(notification_type="campus_request").exists()

    def test_reviewed_request_is_final(self, client_for, make_user, admin_user):
        pending = CampusRequest.objects.create(
            name="West Campus", code="WC", requested_by=make_user(role="canteen"),
            status=CampusRequest.STATUS_REJECTED,
        )

        response = client_for(admin_user).post(
            f"/api/campuses/requests/{pending.id}/review/", {"action": "approve"}, format="json"
        )

        assert response.status_code == 400
        assert not Campus.objects.filter(code="WC").exists()

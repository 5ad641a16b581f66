from datetime import timedelta
from decimal import Decimal
from itertools import count
from unittest import mock

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from apps.authentication.models import User
from apps.canteens.models import Campus, Canteen, Item
from apps.payments.gateway import RazorpayGateway

_sequence = count(1)


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def campus(db):
    return Campus.objects.create(name="North Campus", code="NC", city="Delhi")


@pytest.fixture
def other_campus(db):
    return Campus.objects.create(name="South Campus", code="SC", city="Delhi")


@pytest.fixture
def make_user(db, campus):
    def _make_user(role=User.ROLE_STUDENT, password="s3cure-Passw0rd", **kwargs):
        n = next(_sequence)
        kwargs.setdefault("email", f"{role}{n}@example.com")
        kwargs.setdefault("name", f"{role.title()} {n}")
        if role != User.ROLE_ADMIN:
            kwargs.setdefault("campus", campus)
        return User.objects.create_user(password=password, role=role, **kwargs)
    return _make_user


@pytest.fixture
def student(make_user):
    return make_user()


@pytest.fixture
def other_student(make_user):
    return make_user()


@pytest.fixture
def vendor(make_user):
    return make_user(role=User.ROLE_CANTEEN)


@pytest.fixture
def admin_user(make_user):
    return make_user(role=User.ROLE_ADMIN)


@pytest.fixture
def canteen(vendor, campus, admin_user):
    canteen = Canteen.objects.create(name="Main Canteen", campus=campus, owner=vendor)
    canteen.approve(admin_user)
    return canteen


@pytest.fixture
def item(canteen):
    return Item.objects.create(name="Masala Dosa", price=Decimal("60.00"), canteen=canteen)


@pytest.fixture
def second_item(canteen):
    return Item.objects.create(name="Filter Coffee", price=Decimal("25.50"), canteen=canteen)


@pytest.fixture
def client_for():
    """API client authenticated with the user's token."""
    def _client_for(user=None, **headers):
        client = APIClient(**headers)
        if user is not None:
            token, _ = Token.objects.get_or_create(user=user)
            client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        return client
    return _client_for


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def pickup_time():
    return timezone.now() + timedelta(minutes=30)


@pytest.fixture
def make_order(db, pickup_time):
    from apps.orders.services import create_order

    def _make_order(student, canteen, items, status=None, **kwargs):
        order = create_order(
            student,
            canteen,
            [{"id": item.id, "quantity": quantity} for item, quantity in items],
            pickup_time,
            **kwargs,
        )
        if status is not None:
            order.status = status
            order.save(update_fields=["status"])
        return order
    return _make_order


@pytest.fixture
def gateway():
    """
    Razorpay API calls are faked; signature checks use the real SDK with
    the test secrets.
    """
    orders = count(1)

    def create_order(amount_paise, receipt, notes=None, currency="INR"):
        return {
            "id": f"order_test{next(orders)}",
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }

    with mock.patch.object(RazorpayGateway, "create_order", side_effect=create_order) as create, \
            mock.patch.object(RazorpayGateway, "fetch_payment") as fetch_payment, \
            mock.patch.object(RazorpayGateway, "refund_payment") as refund_payment, \
            mock.patch.object(RazorpayGateway, "fetch_refund") as fetch_refund:
        fetch_payment.return_value = {"id": "pay_test", "method": "upi", "status": "captured"}
        refund_payment.return_value = {"id": "rfnd_test1", "status": "pending"}
        fetch_refund.return_value = {"id": "rfnd_test1", "status": "processed", "amount": 6000}
        yield mock.Mock(
            create_order=create,
            fetch_payment=fetch_payment,
            refund_payment=refund_payment,
            fetch_refund=fetch_refund,
        )


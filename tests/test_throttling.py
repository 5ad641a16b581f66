import pytest

from apps.common.throttling import PaymentRateThrottle


class TestRates:
    @pytest.mark.parametrize("rate, expected", [
        ("10/15m", (10, 900)),
        ("50/1m", (50, 60)),
        ("1000/h", (1000, 3600)),
    ])
    def test_parse_rate(self, rate, expected):
        assert PaymentRateThrottle().parse_rate(rate) == expected

    def test_rejects_unknown_period(self):
        with pytest.raises(ValueError):
            PaymentRateThrottle().parse_rate("10/fortnight")


@pytest.mark.django_db
def test_payment_endpoints_are_limited_per_ip(client_for, student):
    client = client_for(student)

    for _ in range(10):
        assert client.get("/api/payments/transactions/").status_code == 200
    response = client.get("/api/payments/transactions/")

    assert response.status_code == 429
    assert response.json()["message"] == "Too many requests, please try again later."
    assert response.json()["retryAfter"] > 0

import re

from rest_framework.throttling import SimpleRateThrottle

from .utils import get_client_ip

PERIOD_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
RATE_PATTERN = re.compile(r"^(\d*)([smhd])")


class WindowedRateThrottle(SimpleRateThrottle):
    """
    IP keyed throttle that also understands multi-unit windows,
    e.g. "10/15m" is ten requests per fifteen minutes.
    """

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        num, period = rate.split("/")
        match = RATE_PATTERN.match(period.strip())
        if not match:
            raise ValueError(f"Invalid throttle rate: {rate}")
        count = int(match.group(1) or 1)
        return (int(num), count * PERIOD_SECONDS[match.group(2)])

    def get_cache_key(self, request, view):
        return self.cache_format % {
            "scope": self.scope,
            "ident": get_client_ip(request) or self.get_ident(request),
        }


class GeneralRateThrottle(WindowedRateThrottle):
    scope = "general"


class PaymentRateThrottle(WindowedRateThrottle):
    scope = "payments"


class WebhookRateThrottle(WindowedRateThrottle):
    scope = "webhooks"

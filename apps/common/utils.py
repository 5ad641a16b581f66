from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings


def get_client_ip(request):
    """Get client IP address from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def campus_setting(name):
    return settings.CAMPUS_BITES_SETTINGS[name]


def money(value):
    """Quantize to paise precision."""
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_paise(amount):
    """Rupees to the integer paise amount Razorpay expects."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_int(value, default, minimum=1, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number

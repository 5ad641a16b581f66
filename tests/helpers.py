import hashlib
import hmac
import json

from django.conf import settings


def payment_signature(order_id, payment_id):
    secret = settings.RAZORPAY_CONFIG["KEY_SECRET"].encode()
    return hmac.new(secret, f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def webhook_signature(body):
    secret = settings.RAZORPAY_CONFIG["WEBHOOK_SECRET"].encode()
    return hmac.new(secret, body, hashlib.sha256).hexdigest()


def webhook_body(event, **entities):
    return json.dumps({
        "event": event,
        "payload": {name: {"entity": entity} for name, entity in entities.items()},
    }).encode()

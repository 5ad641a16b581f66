import base64
from io import BytesIO

import qrcode
from django.conf import settings


def join_url(group_link):
    return f"{settings.FRONTEND_URL.rstrip('/')}/join-group?link={group_link}"


def generate_qr_data_url(payload):
    """Render ``payload`` as a PNG QR code inside a data URL."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    img_base64 = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{img_base64}"

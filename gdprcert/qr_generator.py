"""
QR code generation for certificate verification links.
"""
from io import BytesIO

import qrcode


def verification_url(base_url, certificate_id):
    """Public verification link for a certificate ID (no personal data)."""
    return f"{base_url.rstrip('/')}/api/verify/{certificate_id}"


def generate_qr_code(payload, size_pixels=200):
    """
    Generate a QR code image for a verification URL or payload string.

    Returns: PIL Image object
    """
    qr = qrcode.QRCode(
        version=None,  # Auto-adjust size
        error_correction=qrcode.constants.ERROR_CORRECT_H,  # High error correction
        box_size=10,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    return img.resize((size_pixels, size_pixels))


def qr_to_bytes(qr_image):
    """Convert PIL Image to PNG bytes."""
    buf = BytesIO()
    qr_image.save(buf, format="PNG")
    buf.seek(0)
    return buf.read()

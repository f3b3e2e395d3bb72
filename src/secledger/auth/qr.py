"""QR rendering for otpauth:// enrollment URIs (qrcode + Pillow)."""

from __future__ import annotations

import base64
from io import BytesIO

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M
from qrcode.image.pil import PilImage

DEFAULT_BOX_SIZE = 10
DEFAULT_BORDER = 4


class QRRenderError(RuntimeError):
    pass


def generate_qr_image(uri: str, box_size: int = DEFAULT_BOX_SIZE, border: int = DEFAULT_BORDER) -> Image.Image:
    """Render ``uri`` into a PIL image; the version grows to fit the data."""
    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=box_size,
            border=border,
        )
        qr.add_data(uri)
        qr.make(fit=True)
        return qr.make_image(image_factory=PilImage).get_image()
    except (ValueError, TypeError, OSError) as e:
        raise QRRenderError(f"QR generation failed: {e}") from e


def get_qr_image_bytes(img: Image.Image) -> bytes:
    """PNG bytes for a rendered QR image."""
    with BytesIO() as buffer:
        img.save(buffer, format="PNG")
        return buffer.getvalue()


def render_data_uri(uri: str, box_size: int = DEFAULT_BOX_SIZE, border: int = DEFAULT_BORDER) -> str:
    """Render ``uri`` as a ``data:image/png;base64,...`` string for an <img> tag."""
    img = generate_qr_image(uri, box_size=box_size, border=border)
    try:
        png = get_qr_image_bytes(img)
    except (ValueError, OSError) as e:
        raise QRRenderError(f"QR encoding failed: {e}") from e
    return "data:image/png;base64," + base64.b64encode(png).decode()

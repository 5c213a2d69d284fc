import io

import segno

QR_SCALE = 6
QR_BORDER = 2


def _qr(data: str):
    # full QR symbol, never Micro QR
    return segno.make_qr(data, error="m")


def qr_png(data: str) -> bytes:
    buffer = io.BytesIO()
    _qr(data).save(buffer, kind="png", scale=QR_SCALE, border=QR_BORDER)
    return buffer.getvalue()


def qr_data_url(data: str) -> str:
    """PNG data URL suitable for an <img src=...> on the ticket page."""
    return _qr(data).png_data_uri(scale=QR_SCALE, border=QR_BORDER)

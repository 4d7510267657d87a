"""Image preparation for the vision model."""

from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from elaina.util.logger import get_logger

logger = get_logger("image_utils")

register_heif_opener()

MAX_SIDE = 1024


def prepare_for_vision(data: bytes, max_side: int = MAX_SIDE) -> tuple[bytes, str]:
    """
    Re-encode an image as RGB JPEG whose longest side is at most ``max_side``.

    Images already within bounds are only re-encoded, never upscaled. This
    blocks the calling thread, so call it via ``asyncio.to_thread``.

    Returns:
        ``(jpeg_bytes, "image/jpeg")``

    Raises:
        ValueError: ``data`` is not a readable image.
    """
    try:
        img = Image.open(BytesIO(data)).convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"unreadable image: {exc}") from exc

    w, h = img.size
    if max(w, h) > max_side:
        if w > h:
            new_w, new_h = max_side, max(1, int(h * max_side / w))
        else:
            new_w, new_h = max(1, int(w * max_side / h)), max_side
        img = img.resize((new_w, new_h))
        logger.debug("[IMAGE] Resized %dx%d -> %dx%d", w, h, new_w, new_h)

    out = BytesIO()
    img.save(out, format="JPEG", quality=85)
    return out.getvalue(), "image/jpeg"

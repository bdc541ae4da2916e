import base64
import io
import logging
from typing import Dict, List

from PIL import Image

logger = logging.getLogger(__name__)


def image_data_url(img: Image.Image, quality: int = 75) -> str:
    """Encode ``img`` as a base64 JPEG data URL."""
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode('ascii')


def add_images_to_messages(messages: List[Dict], images: List[Image.Image]) -> List[Dict]:
    """Return a copy of ``messages`` with ``images`` appended to the last user message."""
    index = next(
        (i for i in range(len(messages) - 1, -1, -1) if messages[i]['role'] == 'user'),
        None,
    )
    if index is None:
        raise ValueError("No user message to attach images to")

    text = messages[index]['content']
    parts = list(text) if isinstance(text, list) else [{"type": "text", "text": text}]
    parts.extend({"type": "image_url", "image_url": {"url": image_data_url(img)}} for img in images)

    result = list(messages)
    result[index] = {**messages[index], 'content': parts}

    logger.debug("Attached %d images to message %d", len(images), index)
    return result

import math
import os
import re

import cv2
import numpy as np

PHOTO_STEM = re.compile(r"^photo(\d+)$")


def build_photo_name(timestamp_ms: int, username: str, index: int, extension: str) -> str:
    return f"{timestamp_ms}-{username}-photo{index}{extension}"


def split_photo_name(name: str):
    """Split ``{timestamp}-{username}-photo{N}{ext}`` into its three parts.

    Returns ``None`` for names that do not have exactly three hyphen-delimited
    components.
    """
    parts = name.split("-")
    if len(parts) != 3:
        return None
    return parts[0], parts[1], parts[2]


def photo_index(name: str, username: str, extension: str):
    """Index encoded in ``name`` if it belongs to ``username`` and ``extension``."""
    parts = split_photo_name(name)
    if parts is None or parts[1] != username:
        return None

    stem, ext = os.path.splitext(parts[2])
    if ext != extension:
        return None

    m = PHOTO_STEM.match(stem)
    if not m:
        return None
    return int(m.group(1))


def next_photo_index(names, username: str, extension: str) -> int:
    highest = 0
    for name in names:
        idx = photo_index(name, username, extension)
        if idx is not None and idx > highest:
            highest = idx
    return highest + 1


def photo_timestamp(name: str):
    parts = split_photo_name(name)
    if parts is None or not parts[0].isdigit():
        return math.inf
    return int(parts[0])


def decode_image(data: bytes):
    img = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Uploaded photo is not a readable image")
    return img


def cover_fit(img, width: int, height: int):
    # scale until both sides cover the box, then crop the centre
    ih, iw = img.shape[:2]
    scale = max(width / iw, height / ih)
    rw = max(width, int(round(iw * scale)))
    rh = max(height, int(round(ih * scale)))

    interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    resized = cv2.resize(img, (rw, rh), interpolation=interp)

    x = (rw - width) // 2
    y = (rh - height) // 2
    return resized[y:y + height, x:x + width]


def encode_image(img, extension: str) -> bytes:
    ok, buf = cv2.imencode(extension.lower(), img)
    if not ok:
        raise ValueError(f"Could not encode image as {extension}")
    return buf.tobytes()

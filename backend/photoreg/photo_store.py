import logging
import os
import tempfile
from dataclasses import dataclass

from photoreg.errors import NotFoundError
from photoreg.utils.helpers import (
    cover_fit,
    decode_image,
    encode_image,
    next_photo_index,
    photo_timestamp,
    split_photo_name,
)

logger = logging.getLogger(__name__)


@dataclass
class PhotoUpload:
    """A raw upload staged on disk for the lifetime of one request."""

    path: str
    filename: str

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1]


class PhotoDirectory:
    def __init__(self, root: str, tmp_dir: str, width: int = 300, height: int = 300):
        self.root = root
        self.tmp_dir = tmp_dir
        self.width = width
        self.height = height

    def exists(self) -> bool:
        return os.path.isdir(self.root)

    def ensure_root(self):
        os.makedirs(self.root, exist_ok=True)

    def list_entries(self):
        if not self.exists():
            return []
        return os.listdir(self.root)

    def path_for(self, name: str) -> str:
        return os.path.join(self.root, name)

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------
    def stage_upload(self, filename: str, data: bytes) -> PhotoUpload:
        os.makedirs(self.tmp_dir, exist_ok=True)
        fd, path = tempfile.mkstemp(dir=self.tmp_dir, suffix=os.path.splitext(filename)[1])
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return PhotoUpload(path=path, filename=filename)

    def discard(self, path):
        """Best-effort removal; failures are logged, never raised."""
        if not path or not os.path.exists(path):
            return
        try:
            os.remove(path)
        except OSError:
            logger.warning("Could not remove %s", path, exc_info=True)

    # ------------------------------------------------------------------
    # stored photos
    # ------------------------------------------------------------------
    def next_index(self, username: str, extension: str) -> int:
        return next_photo_index(self.list_entries(), username, extension)

    def write_resized(self, source_path: str, name: str) -> str:
        with open(source_path, "rb") as fh:
            img = decode_image(fh.read())

        fitted = cover_fit(img, self.width, self.height)
        data = encode_image(fitted, os.path.splitext(name)[1])

        dest = self.path_for(name)
        with open(dest, "wb") as fh:
            fh.write(data)
        return dest

    def find_photo(self, username: str) -> str:
        matches = []
        for name in self.list_entries():
            parts = split_photo_name(name)
            if parts is not None and parts[1] == username:
                matches.append(name)

        if not matches:
            raise NotFoundError("Image not found")

        # oldest upload wins so the answer does not depend on listing order
        matches.sort(key=lambda name: (photo_timestamp(name), name))
        return self.path_for(matches[0])

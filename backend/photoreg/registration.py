import logging
import os
import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from photoreg.database import User, find_existing
from photoreg.errors import ConflictError, InternalError, ValidationError
from photoreg.utils.helpers import build_photo_name

logger = logging.getLogger(__name__)

FORBIDDEN_USERNAME_CHARS = ("-", "/", "\\")


class RegistrationCancelled(Exception):
    pass


def _checkpoint(cancelled):
    if cancelled.is_set():
        raise RegistrationCancelled()


def validate_registration(username, email, filename):
    if not username or not email or not filename:
        raise ValidationError("username, email and photo are required")

    if any(ch in username for ch in FORBIDDEN_USERNAME_CHARS):
        raise ValidationError("username may not contain '-', '/' or '\\'")

    if len(os.path.splitext(filename)[1]) < 2:
        raise ValidationError("photo filename must have an extension")


class KeyedLocks:
    """One lock per key, created on demand and dropped when unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class RegistrationWorkflow:
    def __init__(self, session_factory, photos, clock=time.time):
        self.session_factory = session_factory
        self.photos = photos
        self.clock = clock
        self.locks = KeyedLocks()

    def register(self, username: str, email: str, upload, cancelled=None):
        """Run one registration.

        ``cancelled`` is an optional ``threading.Event``; once set, the
        registration stops at its next checkpoint and undoes its writes.
        """
        validate_registration(username, email, upload.filename if upload else None)

        if cancelled is None:
            cancelled = threading.Event()

        with self.locks.hold(username):
            return self._register(username, email, upload, cancelled)

    def _register(self, username, email, upload, cancelled):
        db = self.session_factory()
        stored = None
        try:
            _checkpoint(cancelled)
            if find_existing(db, username, email):
                raise ConflictError("username or email already exists")

            self.photos.ensure_root()
            index = self.photos.next_index(username, upload.extension)
            name = build_photo_name(
                int(self.clock() * 1000), username, index, upload.extension
            )
            _checkpoint(cancelled)
            stored = self.photos.write_resized(upload.path, name)

            db.add(User(username=username, email=email, photo_path=stored))
            _checkpoint(cancelled)
            db.commit()

        except ConflictError:
            logger.warning("Registration rejected, %s or %s already exists", username, email)
            self.photos.discard(upload.path)
            raise

        except IntegrityError as exc:
            self._compensate(db, stored, upload)
            logger.warning("Unique constraint rejected %s / %s", username, email)
            raise ConflictError("username or email already exists") from exc

        except RegistrationCancelled as exc:
            self._compensate(db, stored, upload)
            logger.warning("Registration for %s cancelled, changes undone", username)
            raise InternalError("Registration timed out") from exc

        except Exception as exc:
            self._compensate(db, stored, upload)
            logger.exception("Registration failed for %s", username)
            raise InternalError() from exc

        finally:
            db.close()

        # the upload now lives on as the resized copy
        self.photos.discard(upload.path)
        logger.info("Registered %s with photo %s", username, stored)
        return {"message": "User registered successfully"}

    def _compensate(self, db, stored, upload):
        # files first; rollback on a dead connection may raise
        self.photos.discard(stored)
        self.photos.discard(upload.path)
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback failed", exc_info=True)

import asyncio
import logging
import threading

from fastapi import APIRouter, UploadFile, Form, File, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from photoreg.database import check_connection, list_users
from photoreg.errors import InternalError, ValidationError
from photoreg.registration import validate_registration

logger = logging.getLogger(__name__)

router = APIRouter()


# ======================================================
# CONNECTION CHECK
# ======================================================
@router.get("/")
def connection_status(request: Request):
    engine = request.app.state.engine
    try:
        check_connection(engine)
    except SQLAlchemyError:
        logger.exception("Error connecting to database")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Error connecting to database", "data": None},
        )

    return {
        "status": "success",
        "message": "Connected to database!",
        "data": {"dialect": engine.dialect.name},
    }


# ======================================================
# GET USERS LIST
# ======================================================
@router.get("/users")
def get_users(request: Request):
    db = request.app.state.SessionLocal()
    try:
        return {"users": [u.to_dict() for u in list_users(db)]}
    except SQLAlchemyError as exc:
        logger.exception("Error retrieving users")
        raise InternalError() from exc
    finally:
        db.close()


# ======================================================
# REGISTER USER
# ======================================================
@router.post(
    "/register",
    summary="Register a user with a profile photo",
    openapi_extra={
        "requestBody": {
            "content": {
                "multipart/form-data": {
                    "schema": {
                        "type": "object",
                        "properties": {
                            "username": {"type": "string"},
                            "email": {"type": "string"},
                            "photo": {"type": "string", "format": "binary"},
                        },
                        "required": ["username", "email", "photo"],
                    }
                }
            }
        }
    }
)
async def register(
    request: Request,
    username: str = Form(None),
    email: str = Form(None),
    photo: UploadFile = File(None)
):
    state = request.app.state
    validate_registration(username, email, photo.filename if photo else None)

    data = await photo.read()
    if not data:
        raise ValidationError("username, email and photo are required")

    upload = await run_in_threadpool(state.photos.stage_upload, photo.filename, data)
    timeout = state.settings.REGISTER_TIMEOUT
    cancelled = threading.Event()
    # trip the worker at the deadline even if the await below is shielded
    timer = asyncio.get_running_loop().call_later(timeout, cancelled.set)
    try:
        return await asyncio.wait_for(
            run_in_threadpool(state.workflow.register, username, email, upload, cancelled),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        # the worker undoes its writes at its next checkpoint
        cancelled.set()
        logger.error("Registration for %s timed out", username)
        raise InternalError("Registration timed out") from exc
    finally:
        timer.cancel()


# ======================================================
# SERVE PHOTO
# ======================================================
@router.get("/image/{username}")
def get_image(username: str, request: Request):
    path = request.app.state.photos.find_photo(username)
    return FileResponse(path)

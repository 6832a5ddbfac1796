import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photoreg.config import Settings
from photoreg.database import create_db_engine, init_db, make_session_factory
from photoreg.errors import RegistryError
from photoreg.photo_store import PhotoDirectory
from photoreg.registration import RegistrationWorkflow
from photoreg.user_router import router


async def registry_error_handler(request: Request, exc: RegistryError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = "Invalid field: " + ", ".join(fields) if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_db_engine(settings)
    # create tables
    init_db(engine)

    app = FastAPI(title="Photo Registry")
    app.state.settings = settings
    app.state.engine = engine
    app.state.SessionLocal = make_session_factory(engine)
    app.state.photos = PhotoDirectory(
        settings.PHOTO_DIR,
        settings.UPLOAD_TMP_DIR,
        width=settings.PHOTO_WIDTH,
        height=settings.PHOTO_HEIGHT,
    )
    app.state.workflow = RegistrationWorkflow(app.state.SessionLocal, app.state.photos)

    app.include_router(router)
    app.add_exception_handler(RegistryError, registry_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    return app


def run():
    settings = Settings()
    uvicorn.run(
        "photoreg.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()

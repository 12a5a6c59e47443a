import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from meetpoint.exceptions import MeetPointError

logger = logging.getLogger(__name__)


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(MeetPointError)
    async def meetpoint_exception_handler(request: Request, exc: MeetPointError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
        else:
            logger.info(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
        return JSONResponse(content={"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error at {request.url.path}: {exc.errors()}")
        return JSONResponse(
            content={"error": "Invalid or missing request fields", "details": jsonable_errors(exc)},
            status_code=422,
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold the raw exception object, which is not JSON serializable
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from placeshare.config import settings
from placeshare.db import close, connect
from placeshare.errors import PlaceShareError
from placeshare.logging_config import setup_logging
from placeshare.routers import health, places, users

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="PlaceShare API", version="0.1.0")


@app.exception_handler(PlaceShareError)
async def placeshare_error_handler(request: Request, exc: PlaceShareError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Invalid input on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"message": "Invalid inputs passed, please check your data."},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = "Could not find this route."
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "An unknown error occurred."})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    allow_credentials=True,
)


@app.on_event("startup")
async def on_startup():
    await connect()


@app.on_event("shutdown")
async def on_shutdown():
    await close()


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(places.router, prefix=f"{settings.API_PREFIX}/places", tags=["places"])
app.include_router(users.router, prefix=f"{settings.API_PREFIX}/users", tags=["users"])

if settings.IMAGE_STORAGE == "local":
    app.mount(settings.UPLOAD_URL_PATH, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="images")

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import database
from errors import LMSError
from routers import activity, assignments, auth, courses, materials, notices, notifications, quizzes, submissions, users

logger = logging.getLogger("lms.web")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.ensure_secure_config_on_startup()
    try:
        database.ensure_indexes()
    except PyMongoError as exc:
        # The API still boots; requests touching the database will fail on their own.
        logger.error("could not ensure indexes: %s", exc)
    logger.info("course portal API started env=%s", config.LMS_ENV)
    yield
    logger.info("course portal API stopped")


app = FastAPI(title="Course Portal API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_store_api_responses(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        response.headers["Cache-Control"] = "no-store"
    return response


# ---------------------- Error handlers ----------------------
def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    return _failure(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _failure(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return _failure(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form"))
    message = str(first.get("msg", "Invalid value")).replace("Value error, ", "")
    return _failure(400, f"{field}: {message}" if field else message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return _failure(500, "Server error")


# ---------------------- Routes ----------------------
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")

for module in (auth, users, courses, assignments, submissions, quizzes, materials, notices, notifications, activity):
    app.include_router(module.router)


@app.get("/")
def read_root():
    return {"message": "Course Portal API running"}


@app.get("/api/health")
def health():
    response = {
        "success": True,
        "backend": "running",
        "database": "unavailable",
        "database_name": None,
        "collections": [],
    }
    try:
        response["database_name"] = database.db.name
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "connected"
    except PyMongoError as exc:
        logger.warning("health check could not reach the database: %s", exc)
        response["database"] = f"error: {str(exc)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

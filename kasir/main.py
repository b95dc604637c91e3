import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from kasir import seed
from kasir.database import engine, init_db, safe_url
from kasir.responses import describe_errors, fail, ok
from kasir.routers import auth, expenses, products, reports, settings, transactions, upload

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("kasir.main")

app = FastAPI(title="kasir-pos API")

app.include_router(auth.router)
app.include_router(products.router)
app.include_router(transactions.router)
app.include_router(expenses.router)
app.include_router(settings.router)
app.include_router(upload.router)
app.include_router(reports.router)

app.mount(upload.UPLOAD_URL_PREFIX, StaticFiles(directory=upload.UPLOAD_ROOT, check_dir=False), name="uploads")


@app.exception_handler(StarletteHTTPException)
def _http_error(_req: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=fail(str(exc.detail)), headers=exc.headers)


@app.exception_handler(RequestValidationError)
def _request_validation_error(_req: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=fail(describe_errors(exc.errors())))


@app.exception_handler(SQLAlchemyError)
def _database_error(_req: Request, exc: SQLAlchemyError):
    logger.exception("unhandled database error")
    return JSONResponse(status_code=500, content=fail(f"Database error: {exc}"))


@app.middleware("http")
async def _no_cache(request: Request, call_next):
    # bare 200 for any OPTIONS the CORS layer did not answer as a preflight
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


# registered last so it wraps the no-cache layer; every origin is allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)


@app.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health check: database unreachable")
        return JSONResponse(status_code=503, content=fail("Database unavailable"))
    return ok({"status": "ok", "db": "ok"})


@app.on_event("startup")
def on_startup():
    logger.info("database: %s", safe_url())
    init_db()
    os.makedirs(upload.product_upload_dir(), exist_ok=True)
    if os.getenv("SEED_DEMO_DATA", "false").lower() in ("1", "true", "yes"):
        try:
            with Session(engine) as session:
                if seed.seed(session):
                    logger.info("demo data seeded")
        except SQLAlchemyError:
            logger.exception("seeding demo data failed")
    for route in app.routes:
        if isinstance(route, APIRoute):
            methods = ",".join(sorted(route.methods))
            logger.debug("route %s methods: %s", route.path, methods)

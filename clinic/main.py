import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, LOG_LEVEL
from .database import Base, SessionLocal, get_db, is_lock_error
from .domain.audit.router import router as audit_router
from .domain.availability.router import router as schedules_router
from .domain.booking.router import doctor_router as open_intervals_router
from .domain.booking.router import router as appointments_router
from .domain.clinical.router import prescription_router, symptom_router
from .domain.identity.router import account_router, doctor_router
from .shared.errors import (
    AppointmentNotEligibleError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidRangeError,
    InvalidTransitionError,
    NotFoundError,
    OutsideAvailabilityError,
    OwnershipMismatchError,
    RoleMismatchError,
    SlotConflictError,
    ValidationFailedError,
)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Domain error kind -> HTTP status
ERROR_STATUS_CODES: dict[type[DomainError], int] = {
    NotFoundError: 404,
    ForbiddenError: 403,
    RoleMismatchError: 422,
    InvalidRangeError: 422,
    OwnershipMismatchError: 422,
    ValidationFailedError: 422,
    OutsideAvailabilityError: 409,
    SlotConflictError: 409,
    InvalidTransitionError: 409,
    AppointmentNotEligibleError: 409,
    ConflictError: 409,
}


def status_code_for(exc: DomainError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 400


def create_app(session_factory: Optional[sessionmaker] = None) -> FastAPI:
    """
    Build the API. Pass session_factory to run against another database
    (tests use a throwaway SQLite file).
    """
    session_factory = session_factory or SessionLocal
    bind = session_factory.kw["bind"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        try:
            Base.metadata.create_all(bind=bind, checkfirst=True)
            logger.info("Database tables created successfully")
        except Exception as e:
            # Ignore "already exists" errors from race conditions between workers
            error_msg = str(e)
            if "already exists" in error_msg or "duplicate key" in error_msg:
                logger.info("Database tables already exist (created by another worker)")
            else:
                logger.error(f"Failed to create database tables: {e}")
                raise
        yield
        logger.info("Application shutting down...")

    app = FastAPI(title="Clinic Booking API", version="1.0.0", lifespan=lifespan)

    if session_factory is not SessionLocal:

        def get_test_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = get_test_db

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        status_code = status_code_for(exc)
        if status_code >= 409:
            logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=status_code, content={"detail": exc.message, "code": exc.code}
        )

    @app.exception_handler(OperationalError)
    async def database_busy_handler(request: Request, exc: OperationalError):
        # A concurrent writer won; the request can simply be retried
        if is_lock_error(exc):
            logger.warning(f"⚠️ {request.method} {request.url.path} lost a write race: {exc.orig}")
            return JSONResponse(
                status_code=409,
                content={"detail": "Concurrent update, please retry", "code": ConflictError.code},
            )
        logger.error(f"❌ Database error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Database unavailable"})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_errors(exc), "code": ValidationFailedError.code},
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise

    # CORS Configuration
    origins = [o.strip() for o in ALLOWED_ORIGINS.split(",") if o.strip()]
    logger.info(f"CORS allowed origins: {origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(account_router)
    app.include_router(doctor_router)
    app.include_router(schedules_router)
    app.include_router(open_intervals_router)
    app.include_router(appointments_router)
    app.include_router(prescription_router)
    app.include_router(symptom_router)
    app.include_router(audit_router)

    @app.get("/")
    def root():
        return {"message": "Clinic Booking API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw input/ctx objects that may not serialize"""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()

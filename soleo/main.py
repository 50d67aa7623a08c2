import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import app_context
from .app.errors import ApiError, ForbiddenError, InternalError, UnauthorizedError
from .app.permissions import Action, Role, require_capability
from .app.routes.exercises import router as exercises_router
from .app.routes.memberships import router as memberships_router
from .app.routes.muscle_groups import router as muscle_groups_router
from .app.routes.payments import router as payments_router
from .app.routes.routines import router as routines_router
from .app.routes.users import router as users_router
from .app.routes.users import serialize_user
from .app.routes.workouts import router as workouts_router
from .app.schemas.common import ApiResponse
from .app.schemas.users import AdminRegisterRequest, AuthOut, LoginRequest, RegisterRequest, UserOut
from .app.services.accounts import get_account_service, get_user_repository
from .app.users import UserRecord
from .config import get_settings
from .db import Database
from .jobs import get_job_metrics, shutdown_job_scheduler, start_job_scheduler

load_dotenv()

settings = get_settings()

logger = logging.getLogger("soleo")
auth_logger = logging.getLogger("auth")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


configure_logging(settings.log_level)


def create_access_token(*, subject: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    payload: Dict[str, Any] = {"sub": subject, "role": role}
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.auth.jwt_exp_minutes)
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, settings.auth.jwt_secret_key, algorithm=settings.auth.jwt_algorithm)


def get_user_by_id(uid: int) -> Optional[UserRecord]:
    return get_user_repository().get_user(uid)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_user_from_token(token: str) -> Optional[UserRecord]:
    try:
        payload = jwt.decode(token, settings.auth.jwt_secret_key, algorithms=[settings.auth.jwt_algorithm])
        subject = payload.get("sub")
        if subject is None:
            return None
        user_id = int(subject)
    except (JWTError, ValueError):
        return None

    return get_user_by_id(user_id)


def get_current_user(authorization: Optional[str] = Header(None)) -> UserRecord:
    token = _bearer_token(authorization)
    if token is None:
        raise UnauthorizedError("Not authenticated")

    user = resolve_user_from_token(token)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    if not user.is_active:
        raise ForbiddenError("Account is not active", detail={"status": user.status.value})
    return user


def _auth_payload(user: UserRecord) -> AuthOut:
    token = create_access_token(subject=str(user.id), role=user.role.value)
    return AuthOut(token=token, role=user.role, user=serialize_user(user))


app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(memberships_router)
app.include_router(users_router)
app.include_router(muscle_groups_router)
app.include_router(exercises_router)
app.include_router(routines_router)
app.include_router(workouts_router)
app.include_router(payments_router)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error_code": exc.code, "error": exc.message},
        )
    return exc.to_response()


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": message,
            "error": "validation_error",
            "errors": [
                {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg")}
                for error in errors
            ],
        },
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "error": "http_error"},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return InternalError("Internal server error").to_response()


@app.on_event("startup")
def _open_database() -> None:
    database = Database(settings.database)
    database.open()
    app.state.database = database
    app_context.configure(database=database, get_current_user=get_current_user)
    start_job_scheduler(settings.jobs)


@app.on_event("shutdown")
def _close_database() -> None:
    shutdown_job_scheduler()
    database = getattr(app.state, "database", None)
    if database is not None:
        database.close()
    app_context.reset()


@app.get("/api/healthz")
def healthz() -> Dict[str, Any]:
    return {"success": True, "status": "ok", "database": app_context.is_configured()}


@app.get("/api/metrics/jobs")
def read_job_metrics() -> Dict[str, Any]:
    return get_job_metrics()


@app.post("/api/auth/register", response_model=ApiResponse[AuthOut], status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest) -> ApiResponse[AuthOut]:
    user = get_account_service().register(
        name=payload.name,
        email=str(payload.email),
        password=payload.password,
    )
    auth_logger.info("Registration completed", extra={"user_id": user.id})
    return ApiResponse(message="User registered", data=_auth_payload(user))


@app.post("/api/auth/login", response_model=ApiResponse[AuthOut])
def login(payload: LoginRequest) -> ApiResponse[AuthOut]:
    user = get_account_service().authenticate(email=str(payload.email), password=payload.password)
    auth_logger.info("Login succeeded", extra={"user_id": user.id})
    return ApiResponse(message="Login successful", data=_auth_payload(user))


@app.get("/api/auth/profile", response_model=ApiResponse[UserOut])
def profile(current_user: UserRecord = Depends(get_current_user)) -> ApiResponse[UserOut]:
    return ApiResponse(data=serialize_user(current_user))


@app.post("/api/auth/register-admin", response_model=ApiResponse[UserOut], status_code=status.HTTP_201_CREATED)
def register_admin(
    payload: AdminRegisterRequest,
    current_user: UserRecord = Depends(get_current_user),
) -> ApiResponse[UserOut]:
    require_capability(current_user, Action.REGISTER_USERS)
    user = get_account_service().register_user(
        name=payload.name,
        email=str(payload.email),
        password=payload.password,
        role=payload.role,
    )
    auth_logger.info(
        "User provisioned",
        extra={"user_id": user.id, "role": user.role.value, "actor_id": current_user.id},
    )
    message = "Administrator registered" if user.role is Role.ADMIN else "User registered"
    return ApiResponse(message=message, data=serialize_user(user))

# run: uvicorn soleo.main:app --host 127.0.0.1 --port 8000 --reload

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import Response
from fastapi.security import OAuth2PasswordRequestForm
import logging

from . import auth
from .auth import AuthUser, get_current_user
from .config import get_settings
from .database import get_session, init_db
from .observability import (
    get_health_check,
    init_sentry,
    login_failures_total,
    metrics_endpoint,
    setup_logging,
    setup_metrics_middleware,
)
from .routes import photos as photos_routes
from .routes import views as views_routes
from .schemas import LoginRequest, SessionResponse

# Setup observability
setup_logging()
init_sentry()

logger = logging.getLogger("findspot")

settings = get_settings()

app = FastAPI(title="Findspot API")

setup_metrics_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts) or ["*"])

app.include_router(photos_routes.router)
app.include_router(views_routes.router)


def _token_response(user) -> dict:
    return {
        "access_token": auth.create_token_for_user(user),
        "token_type": "bearer",
        "id": str(user.id),
        "email": user.email,
        "admin": bool(user.is_admin),
    }


@app.post("/auth/login", response_model=dict)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), session=Depends(get_session)):
    user = await auth.authenticate_user(form_data.username, form_data.password, session)
    if not user:
        login_failures_total.inc()
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


# JSON variant for clients that do not send form bodies
@app.post("/auth/login-json", response_model=dict)
async def login_json(payload: LoginRequest, session=Depends(get_session)):
    user = await auth.authenticate_user(payload.email, payload.password, session)
    if not user:
        login_failures_total.inc()
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@app.get("/auth/me", response_model=SessionResponse)
async def read_session(user: AuthUser = Depends(get_current_user)):
    """Current session: who is signed in and whether they may edit."""
    return SessionResponse(id=user.id, email=user.email, role=user.role, admin=user.admin)


@app.post("/auth/logout", status_code=204)
async def logout(user: AuthUser = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    logger.info("User %s signed out", user.id)
    return Response(status_code=204)


@app.on_event("startup")
async def on_startup():
    await init_db()


@app.get("/health")
def health():
    """Health check endpoint."""
    return get_health_check()


@app.get("/metrics")
def metrics() -> Response:
    return metrics_endpoint()

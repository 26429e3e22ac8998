"""Portfolio Maker  --  Main FastAPI application."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import guard
import themes
from auth import AuthProvider
from composer import PortfolioComposer
from config import ACCESS_TOKEN_EXPIRE_MINUTES, DATASTORE_BACKEND, LOG_LEVEL, LOGIN_RATE_LIMIT, TEMPLATES_DIR
from database import SessionLocal, init_db
from datastore import get_datastore
from errors import (
    DuplicateEmail, FormValidationError, InvalidCredentials, LoadFailed,
    NotFoundError, SaveFailed, WeakPassword,
)
from forms import PortfolioForm
from router import Match, Router, chrome_hidden
from schemas import LoginRequest, PortfolioSubmission, ProfileRow, RegisterRequest, SessionResponse
from session_store import SessionStore

# ---------- Logging ----------
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ---------- App setup ----------
app = FastAPI(title="Portfolio Maker", version="1.0.0")

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

templates = Jinja2Templates(directory=TEMPLATES_DIR)

COOKIE_NAME = "access_token"


@app.on_event("startup")
def on_startup():
    # Credentials always live in the SQL database, whichever store holds portfolios.
    init_db(auth_only=DATASTORE_BACKEND != "sql")
    logger.info("Portfolio Maker started (data store: %s)", DATASTORE_BACKEND)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error for {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception for {request.url}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)},
    )


# ========================================================================
# Session dependency
# ========================================================================

def _get_token_from_request(request: Request) -> Optional[str]:
    """Extract JWT from Authorization header or cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return request.cookies.get(COOKIE_NAME)


async def get_session_store(request: Request):
    """Request-scoped session store seeded from the caller's token."""
    provider = AuthProvider(SessionLocal, token=_get_token_from_request(request))
    store = SessionStore(provider, get_datastore())
    await store.initialize()
    try:
        yield store
    finally:
        store.close()


def require_profile(store: SessionStore, role: Optional[str] = None) -> ProfileRow:
    decision = guard.evaluate(store, role)
    if decision.state == guard.GuardState.UNAUTHENTICATED:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if not decision.allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Only {role}s can do this")
    return store.profile


def _with_token(resp: Response, store: SessionStore) -> Response:
    resp.set_cookie(
        COOKIE_NAME, store.provider.token, httponly=True, samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60, path="/",
    )
    return resp


# ========================================================================
# Auth API routes
# ========================================================================

@app.post("/api/login")
@limiter.limit(LOGIN_RATE_LIMIT)
async def api_login(request: Request, payload: LoginRequest, store: SessionStore = Depends(get_session_store)):
    try:
        await store.sign_in(payload.email, payload.password)
    except InvalidCredentials as e:
        raise HTTPException(status_code=401, detail=e.message)
    return _with_token(JSONResponse({"message": "Logged in", "redirect": "/dashboard"}), store)


@app.post("/api/register")
async def api_register(payload: RegisterRequest, store: SessionStore = Depends(get_session_store)):
    if not payload.full_name.strip():
        raise HTTPException(status_code=400, detail="Full name is required")
    try:
        await store.sign_up(payload.email, payload.password, payload.full_name.strip(), payload.role)
    except (DuplicateEmail, WeakPassword) as e:
        raise HTTPException(status_code=400, detail=e.message)
    except SaveFailed as e:
        raise HTTPException(status_code=500, detail=e.message)
    return _with_token(JSONResponse({"message": "Account created", "redirect": "/dashboard"}), store)


@app.post("/api/logout")
async def api_logout(store: SessionStore = Depends(get_session_store)):
    await store.sign_out()
    resp = JSONResponse({"message": "Logged out", "redirect": "/"})
    resp.delete_cookie(COOKIE_NAME, path="/")
    return resp


@app.get("/api/session", response_model=SessionResponse)
async def api_session(store: SessionStore = Depends(get_session_store)):
    profile = store.profile
    return SessionResponse(authenticated=profile is not None, profile=profile)


# ========================================================================
# Portfolio API routes
# ========================================================================

@app.get("/api/portfolio")
async def api_my_portfolio(store: SessionStore = Depends(get_session_store)):
    profile = require_profile(store)
    try:
        model = await PortfolioComposer(store.datastore).load_for_owner(profile.id)
    except LoadFailed as e:
        raise HTTPException(status_code=500, detail=e.message)
    if model is None:
        raise HTTPException(status_code=404, detail="No portfolio found")
    return model.as_dict()


async def _save_portfolio(store: SessionStore, payload: PortfolioSubmission, is_edit: bool) -> Dict[str, Any]:
    profile = require_profile(store, "student")
    form = PortfolioForm(store.datastore, profile, is_edit=is_edit)
    try:
        portfolio = await form.save(payload)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except SaveFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {
        "message": "Portfolio saved",
        "username": portfolio["username"],
        "url": f"/portfolio/{portfolio['username']}",
        "redirect": "/dashboard",
    }


@app.post("/api/portfolio")
async def api_create_portfolio(payload: PortfolioSubmission, store: SessionStore = Depends(get_session_store)):
    return await _save_portfolio(store, payload, is_edit=False)


@app.put("/api/portfolio")
async def api_update_portfolio(payload: PortfolioSubmission, store: SessionStore = Depends(get_session_store)):
    return await _save_portfolio(store, payload, is_edit=True)


@app.get("/api/portfolios/{username}")
async def api_public_portfolio(username: str):
    try:
        model = await PortfolioComposer(get_datastore()).load_public(username)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except LoadFailed as e:
        raise HTTPException(status_code=500, detail=e.message)
    return model.as_dict()


@app.get("/api/gallery")
async def api_gallery(q: Optional[str] = None):
    try:
        portfolios = await PortfolioComposer(get_datastore()).list_public(q)
    except LoadFailed as e:
        raise HTTPException(status_code=500, detail=e.message)
    return {"portfolios": portfolios}


# ========================================================================
# Page views (HTML)
# ========================================================================

View = Callable[[Request, SessionStore, Router], Awaitable[Response]]


def _page(request: Request, store: SessionStore, router: Router, name: str,
          status_code: int = 200, **context) -> HTMLResponse:
    context.update({
        "profile": store.profile,
        "path": router.path,
        "show_chrome": not chrome_hidden(router.path),
    })
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _redirect(router: Router, path: str) -> RedirectResponse:
    router.navigate(path)
    return RedirectResponse(url=router.path, status_code=302)


def _not_found(request, store, router, message: str = "Page not found") -> HTMLResponse:
    return _page(request, store, router, "not_found.html", status_code=404, message=message)


async def home_view(request, store, router):
    return _page(request, store, router, "home.html")


async def login_view(request, store, router):
    if store.profile is not None:
        return _redirect(router, "/dashboard")
    return _page(request, store, router, "login.html", mode="login")


async def register_view(request, store, router):
    if store.profile is not None:
        return _redirect(router, "/dashboard")
    return _page(request, store, router, "login.html", mode="register")


async def dashboard_view(request, store, router):
    profile = store.profile
    portfolio, error = None, ""
    if profile.role == "student":
        try:
            portfolio = await PortfolioComposer(store.datastore).find_owned(profile.id)
        except LoadFailed as e:
            error = e.message
    return _page(request, store, router, "dashboard.html", portfolio=portfolio, error=error)


async def portfolio_create_view(request, store, router):
    composer = PortfolioComposer(store.datastore)
    try:
        if await composer.find_owned(store.profile.id) is not None:
            return _redirect(router, "/portfolio/edit")
    except LoadFailed as e:
        return _page(request, store, router, "portfolio_form.html", is_edit=False,
                     submission=PortfolioSubmission(portfolio={}), error=e.message)
    return _page(request, store, router, "portfolio_form.html", is_edit=False,
                 submission=PortfolioSubmission(portfolio={}), error="")


async def portfolio_edit_view(request, store, router):
    form = PortfolioForm(store.datastore, store.profile, is_edit=True)
    try:
        submission = await form.load()
    except LoadFailed as e:
        return _page(request, store, router, "portfolio_form.html", is_edit=True,
                     submission=PortfolioSubmission(portfolio={}), error=e.message)
    if submission is None:
        return _redirect(router, "/portfolio/create")
    return _page(request, store, router, "portfolio_form.html", is_edit=True,
                 submission=submission, error="")


async def gallery_view(request, store, router):
    search = request.query_params.get("q", "")
    portfolios, error = [], ""
    try:
        portfolios = await PortfolioComposer(store.datastore).list_public(search)
    except LoadFailed as e:
        error = e.message
    return _page(request, store, router, "gallery.html", portfolios=portfolios, search=search, error=error)


async def portfolio_public_view(request, store, router):
    username = router.match.params["username"]
    try:
        model = await PortfolioComposer(store.datastore).load_public(username)
    except (NotFoundError, LoadFailed) as e:
        return _not_found(request, store, router, e.message)
    return HTMLResponse(themes.render(model))


async def not_found_view(request, store, router):
    return _not_found(request, store, router)


VIEWS: Dict[str, View] = {
    "home": home_view,
    "login": login_view,
    "register": register_view,
    "dashboard": dashboard_view,
    "portfolio_create": portfolio_create_view,
    "portfolio_edit": portfolio_edit_view,
    "gallery": gallery_view,
    "portfolio_view": portfolio_public_view,
    "not_found": not_found_view,
}


async def dispatch(request: Request, store: SessionStore, path: str) -> Response:
    """Resolve the path, run the guard, then render the matched view."""
    router = Router(path)
    match: Match = router.match
    decision = guard.check(store, match)
    if decision.state == guard.GuardState.LOADING:
        return _page(request, store, router, "loading.html")
    if decision.redirect:
        return _redirect(router, decision.redirect)
    return await VIEWS[match.view](request, store, router)


@app.get("/{path:path}", response_class=HTMLResponse)
async def page(request: Request, path: str, store: SessionStore = Depends(get_session_store)):
    return await dispatch(request, store, "/" + path)

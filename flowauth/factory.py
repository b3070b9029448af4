"""Application factory for the login service."""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sqlalchemy import create_engine

from .app_logging import setup_logger
from .config import Settings, load_settings, public_settings
from .exceptions import ConfigurationError, FlowAuthError
from .gates import InjectUser, Pipeline, RequireRole, current_user
from .handlers import CallbackHandler, LoginInitiator, LogoutHandler
from .provider import OAuthClient
from .sessions import CookieSessionStore, SessionStore
from .users import SQLUserDirectory, UserDirectory

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 32


def make_store(settings: Settings) -> CookieSessionStore:
    if not settings.session_secret:
        raise ConfigurationError('SESSION_SECRET is not set')
    if len(settings.session_secret.encode()) < MIN_SECRET_BYTES:
        logger.warning('SESSION_SECRET is shorter than %d bytes', MIN_SECRET_BYTES)
    return CookieSessionStore(settings.session_secret,
                              max_age=settings.session_duration,
                              secure=settings.secure,
                              domain=settings.domain,
                              samesite=settings.samesite)


def make_client(settings: Settings) -> OAuthClient:
    return OAuthClient(settings.oauth_client_id, settings.oauth_client_secret,
                       redirect_url=settings.oauth_redirect_url,
                       scopes=settings.oauth_scopes,
                       auth_url=settings.oauth_auth_url,
                       token_url=settings.oauth_token_url,
                       userinfo_url=settings.oauth_userinfo_url,
                       timeout=settings.provider_timeout)


def make_directory(settings: Settings) -> SQLUserDirectory:
    connect_args = {}
    if 'sqlite' in settings.users_db_uri:
        connect_args = {'check_same_thread': False}
    engine = create_engine(settings.users_db_uri, connect_args=connect_args)
    directory = SQLUserDirectory(engine, default_role=settings.default_role)
    directory.create_tables()
    return directory


def make_router(store: SessionStore, client: OAuthClient,
                directory: UserDirectory, settings: Settings) -> APIRouter:
    """Routes for the login flow plus a few that use the gates."""
    login_initiator = LoginInitiator(store, client,
                                     flow_max_age=settings.flow_duration,
                                     strict_redirects=settings.login_strict_redirect)
    callback_handler = CallbackHandler(store, client, directory,
                                       session_name=settings.session_cookie_name)
    logout_handler = LogoutHandler(store, session_name=settings.session_cookie_name)

    anyone = Pipeline(InjectUser(store, directory,
                                 session_name=settings.session_cookie_name))
    admins = anyone.then(RequireRole(store, directory, role=settings.admin_role,
                                     session_name=settings.session_cookie_name))

    router = APIRouter()

    @router.api_route('/login', methods=['GET', 'POST'])
    async def login(request: Request) -> Response:
        """Start a login; ``redirect`` is where to land afterwards."""
        next_page = request.query_params.get('redirect', '')
        if request.method == 'POST':
            form = await request.form()
            next_page = form.get('redirect', next_page) or ''
        return login_initiator.begin(request, str(next_page))

    @router.get('/oauth2callback')
    def oauth2_callback(request: Request, state: str = '', code: str = '',
                        error: str = '') -> Response:
        """Provider redirects here with ``state`` and ``code``."""
        return callback_handler.handle(request, state, code, error=error)

    @router.api_route('/logout', methods=['GET', 'POST'])
    def logout(request: Request) -> Response:
        return logout_handler.logout(request)

    @router.get('/me', dependencies=anyone.dependencies)
    def me(request: Request) -> JSONResponse:
        user = current_user(request)
        return JSONResponse({'user': user.model_dump() if user else None})

    @router.get('/admin', dependencies=admins.dependencies)
    def admin(request: Request) -> JSONResponse:
        return JSONResponse({'user': current_user(request).model_dump()})

    return router


def flowauth_error_handler(request: Request, exc: FlowAuthError) -> Response:
    """Short message to the client, full detail to the log."""
    if exc.status_code >= 500:
        logger.error('%s: %s', exc.message, exc.detail, exc_info=exc)
    else:
        logger.info('%s %s: %s', request.method, request.url.path, exc.detail)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(settings: Optional[Settings] = None,
               store: Optional[SessionStore] = None,
               client: Optional[OAuthClient] = None,
               directory: Optional[UserDirectory] = None) -> FastAPI:
    """Build the app. Collaborators not passed in are built from ``settings``."""
    if settings is None:
        settings = load_settings()
    setup_logger(settings.log_level)
    logger.info('Starting with settings %s', public_settings(settings))
    if not settings.secure:
        logger.warning("SECURE is off. This is for local development only.")

    store = store or make_store(settings)
    client = client or make_client(settings)
    directory = directory or make_directory(settings)

    app = FastAPI(root_path=settings.server_root_path,
                  settings=settings,
                  session_store=store,
                  oauth_client=client,
                  user_directory=directory)
    app.add_exception_handler(FlowAuthError, flowauth_error_handler)
    app.include_router(make_router(store, client, directory, settings))

    @app.middleware("http")
    async def apply_response_headers(request: Request, call_next: Callable) -> Response:
        """Apply response headers to all responses.
           Prevent UI redress attacks.
        """
        response: Response = await call_next(request)
        response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
        response.headers['X-Frame-Options'] = 'DENY'
        return response

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app

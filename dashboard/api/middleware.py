"""
Proanbud — Account Middleware
==============================
Resolves the X-Account-Id header into an AccountContext on request.state.
Every record an account owns lives below accounts/{account_id}/, so the
header decides which data a request can touch.

Public endpoints (health, docs) bypass the check.
"""
from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from proanbud.lib.account import AccountContext
from proanbud.lib.errors import AuthorizationError
from proanbud.lib.logger import setup_logger

logger = setup_logger("api_middleware")

ACCOUNT_HEADER = "X-Account-Id"
USER_EMAIL_HEADER = "X-User-Email"

# Paths that don't require an account
PUBLIC_PATHS = {
    "/api/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class AccountMiddleware(BaseHTTPMiddleware):
    """
    Attach request.state.account (AccountContext or None).

    With require_account the request is rejected with 401 when the header
    is missing; otherwise it passes through and the services reject it.
    """

    def __init__(self, app, require_account: bool = True):
        super().__init__(app)
        self.require_account = require_account

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        request.state.account = None

        if path in PUBLIC_PATHS:
            return await call_next(request)

        account_id = (request.headers.get(ACCOUNT_HEADER) or "").strip()
        if not account_id:
            if self.require_account:
                logger.info("Rejected %s %s without %s", request.method, path, ACCOUNT_HEADER)
                error = AuthorizationError("bruke tjenesten", reason="missing account header",
                                           code="UNAUTHENTICATED")
                return JSONResponse(status_code=401, content=error.to_dict())
            return await call_next(request)

        request.state.account = AccountContext(
            account_id=account_id,
            user_email=request.headers.get(USER_EMAIL_HEADER),
        )
        return await call_next(request)


def get_account(request: Request) -> AccountContext:
    """
    Dependency returning the caller's AccountContext.

    Usage:
        @router.get("/")
        async def list_things(ctx: AccountContext = Depends(get_account)): ...
    """
    account = getattr(request.state, "account", None)
    if account is None:
        raise AuthorizationError("bruke tjenesten", reason="missing account header",
                                 code="UNAUTHENTICATED")
    return account

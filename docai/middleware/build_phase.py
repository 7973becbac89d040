"""
Build Phase Middleware

While BUILD_PHASE is set (image builds, static checks that import the
app), every API request is answered with a fixed message and nothing
downstream runs: no auth, no database, no provider calls.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

BUILD_PHASE_RESPONSE = {"message": "Skip during build"}


class BuildPhaseMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, enabled: bool = False, path_prefix: str = "/api"):
        super().__init__(app)
        self.enabled = enabled
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if self.enabled and request.url.path.startswith(self.path_prefix):
            return JSONResponse(BUILD_PHASE_RESPONSE, status_code=200)
        return await call_next(request)

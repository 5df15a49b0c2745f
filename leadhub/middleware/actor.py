"""
Actor context middleware for the Leadhub backend.

Authentication happens upstream: the gateway validates the session and
forwards the caller identity in trusted headers. This middleware only copies
that identity onto ``request.state`` for RBAC checks and audit records.
"""
from leadhub.obs.logging import get_logger
from fastapi import Request

logger = get_logger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


class ActorContextMiddleware:
    """Middleware to expose the gateway-authenticated actor on request.state."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)

        user_id = request.headers.get(USER_ID_HEADER)
        user_role = request.headers.get(USER_ROLE_HEADER)

        request.state.user_id = user_id
        request.state.user_role = user_role.lower() if user_role else None

        if user_role and not user_id:
            logger.warning(f"Role header present without user id on {request.url.path}")

        await self.app(scope, receive, send)

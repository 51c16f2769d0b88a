from __future__ import annotations

from fastapi import HTTPException, Request
from starlette.requests import HTTPConnection

from ..consensus.blocking import run_blocking
from ..consensus.errors import ScopeNotFound, TransientIOError


def session_user(conn: HTTPConnection) -> dict | None:
    """Return the user dict stored in the session (HTTP or WebSocket), or ``None``."""
    return conn.session.get("user")


def require_user(request: Request) -> dict:
    """Raise 401 if no member is logged in."""
    user = session_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(request: Request) -> dict:
    """Raise 401 if not logged in, 403 if not admin."""
    user = require_user(request)
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def check_group_member(conn: HTTPConnection, group_id: str, member_id: str) -> None:
    """Raise 404 for unknown groups, 403 for non-members, 503 if the roster is unreachable."""
    service = conn.app.state.swipe_service
    try:
        members = await run_blocking(
            service.directory.get_members,
            group_id,
            timeout=service.config.read_timeout_seconds,
        )
    except ScopeNotFound:
        raise HTTPException(status_code=404, detail="Group not found")
    except TransientIOError:
        raise HTTPException(status_code=503, detail="Membership directory unavailable")
    if member_id not in members:
        raise HTTPException(status_code=403, detail="Not a member of this group")


async def require_group_member(group_id: str, request: Request) -> dict:
    """Dependency for ``/groups/{group_id}/...`` routes."""
    user = require_user(request)
    await check_group_member(request, group_id, user["member_id"])
    return user

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
import hmac
import signal

from ..errors import CommandNotFoundError
from ..manager import ExecManager

router = APIRouter()


async def get_manager_dep(request: Request) -> ExecManager:
    # Hosts attach their manager at startup: app.state.exec_manager = ExecManager(...)
    manager = getattr(request.app.state, "exec_manager", None)
    if manager is None:
        raise HTTPException(503, "Exec manager not configured")
    return manager

async def require_auth(
    mgr: ExecManager = Depends(get_manager_dep),
    authorization: str = Header(None),
    x_exec_key: str = Header(None, alias="X-Exec-Key"),
) -> None:
    """Require the configured API token for mutating endpoints."""
    expected = mgr.config.api_token

    # No token configured: local/dev mode
    if not expected:
        return

    token = None
    if x_exec_key:
        token = x_exec_key
    elif authorization and authorization.startswith("Bearer "):
        token = authorization[7:]

    if not token:
        raise HTTPException(403, "Missing auth token (X-Exec-Key or Authorization header)")

    if not hmac.compare_digest(token, expected):
        raise HTTPException(403, "Invalid auth token")

@router.get("/api/exec")
async def list_commands(
    mgr: ExecManager = Depends(get_manager_dep)
):
    return {"ok": True, "data": [r.to_payload() for r in mgr.list_commands()]}

@router.get("/api/exec/{ident}")
async def get_command(
    ident: str,
    output: bool = Query(False),
    mgr: ExecManager = Depends(get_manager_dep)
):
    record = mgr.search_by_id(ident)
    if not record:
        raise HTTPException(404, "Command not found")
    return {"ok": True, "data": record.to_payload(include_output=output)}

@router.post("/api/exec/{ident}/kill")
async def kill_command(
    ident: str,
    sig: int = Query(int(signal.SIGKILL), alias="signal"),
    mgr: ExecManager = Depends(get_manager_dep),
    _: None = Depends(require_auth),
):
    try:
        sent = mgr.kill(ident, sig)
    except CommandNotFoundError:
        raise HTTPException(404, "Command not found")
    if not sent:
        raise HTTPException(409, "Command is not running")
    return {"ok": True}

@router.delete("/api/exec/{ident}")
async def delete_command(
    ident: str,
    mgr: ExecManager = Depends(get_manager_dep),
    _: None = Depends(require_auth),
):
    """Remove a command now, killing it if still running."""
    try:
        record = mgr.delete(ident)
    except CommandNotFoundError:
        raise HTTPException(404, "Command not found")
    return {"ok": True, "data": {"number": record.number}}

@router.delete("/api/exec")
async def delete_all_commands(
    mgr: ExecManager = Depends(get_manager_dep),
    _: None = Depends(require_auth),
):
    removed = mgr.delete_all()
    return {"ok": True, "data": {"removed": removed}}

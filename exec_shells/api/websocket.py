from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()

@router.websocket("/ws/exec/events")
async def exec_events_ws(websocket: WebSocket):
    """Stream command lifecycle and signal events."""
    manager = getattr(websocket.app.state, "exec_manager", None)
    if manager is None:
        await websocket.close(code=1011)
        return
    await websocket.accept()
    bus = manager.events
    q = bus.subscribe()

    try:
        while True:
            event = await q.get()
            await websocket.send_json(event.to_dict())
    except WebSocketDisconnect:
        pass
    finally:
        bus.unsubscribe(q)

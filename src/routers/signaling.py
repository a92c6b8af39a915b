"""
WebSocket signaling route.

One receive loop per connection feeds frames to the session coordinator;
outbound traffic goes through the connection's ``WebSocketTransport`` writer.
"""

from fastapi import APIRouter
from fastapi.websockets import WebSocket, WebSocketDisconnect

from core.coordinator import SessionCoordinator
from core.transport import WebSocketTransport


def create_signaling_router(coordinator: SessionCoordinator, path: str = "/ws", send_queue_size: int = 64) -> APIRouter:
    """Create the signaling router bound to ``coordinator``."""
    router = APIRouter(tags=["Signaling"])

    @router.websocket(path)
    async def signaling_socket(websocket: WebSocket):
        await websocket.accept()
        transport = WebSocketTransport(websocket, queue_size=send_queue_size)
        transport.start()
        session = coordinator.connect(transport)

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                data = frame.get("text")
                if data is None:
                    data = frame.get("bytes")
                if data is None:
                    continue
                await coordinator.handle_text(session, data)
        except WebSocketDisconnect:
            pass
        finally:
            await coordinator.disconnect(session)
            transport.close()
            await transport.wait_closed()

    return router

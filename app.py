from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

import events
from connections import ConnectionHub
from constants import DEFAULT_MAX_PLAYERS, LOG_FILE, LOG_LEVEL, OUTBOUND_QUEUE_SIZE, SERVER_NAME
from event_router import EventRouter
from logging_config import get_logger, setup_logging
from registry import RoomRegistry
from routers.rooms import rooms_router
from routers.status import status_router

setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: empty registry, no connections
    registry = RoomRegistry(default_max_players=app.state.default_max_players)
    hub = ConnectionHub(queue_size=app.state.queue_size)
    app.state.registry = registry
    app.state.hub = hub
    app.state.event_router = EventRouter(registry, hub)
    logger.info(f"{SERVER_NAME} relay started")
    yield
    # Shutdown: all rooms are ephemeral and vanish with the process
    await hub.close()
    registry.clear()
    logger.info(f"{SERVER_NAME} relay stopped")


def create_app(default_max_players: int = DEFAULT_MAX_PLAYERS, queue_size: int = OUTBOUND_QUEUE_SIZE) -> FastAPI:
    app = FastAPI(
        title=f"{SERVER_NAME} Relay",
        description="Real-time room relay for multiplayer ball games",
        lifespan=lifespan,
    )
    app.state.default_max_players = default_max_players
    app.state.queue_size = queue_size

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(status_router)
    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


async def websocket_endpoint(websocket: WebSocket):
    """One relay connection.

    Every frame in both directions is `{"event": <name>, "data": <payload>}`.
    The first frame sent is `connected` carrying the connection id, which is
    also the player id within rooms.
    """
    hub: ConnectionHub = websocket.app.state.hub
    event_router: EventRouter = websocket.app.state.event_router

    connection_id = await hub.register(websocket)
    hub.send_to(connection_id, events.CONNECTED, {"id": connection_id})

    message_count = 0
    try:
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            event_router.handle_frame(connection_id, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"Error receiving message from connection {connection_id}: {e}", exc_info=True)
    finally:
        # Stop delivering to this socket before the rest of the room hears about it
        hub.unregister(connection_id)
        event_router.handle_disconnect(connection_id)


app = create_app()

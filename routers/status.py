from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from constants import SERVER_NAME
from registry import RoomRegistry
from routers.dependencies import get_registry
from schemas.rooms import HealthResponse

status_router = APIRouter(tags=["status"])

STATUS_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{name} Server</title>
    <style>
        body {{
            font-family: Arial, sans-serif;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            color: white;
            display: flex;
            justify-content: center;
            align-items: center;
            height: 100vh;
            margin: 0;
        }}
        .container {{
            text-align: center;
            background: rgba(0,0,0,0.3);
            padding: 50px;
            border-radius: 20px;
        }}
        h1 {{ font-size: 48px; margin: 0 0 20px 0; }}
        .status {{ font-size: 24px; margin: 10px 0; }}
        .count {{ color: #4CAF50; font-weight: bold; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>{name} Server</h1>
        <div class="status">Server is running</div>
        <div class="status">Active rooms: <span class="count" id="rooms">{rooms}</span></div>
        <div class="status">Total players: <span class="count" id="players">{players}</span></div>
    </div>
</body>
</html>
"""


@status_router.get("/", response_class=HTMLResponse)
def status_page(registry: RoomRegistry = Depends(get_registry)):
    rooms, players = registry.stats()
    return STATUS_PAGE.format(name=SERVER_NAME, rooms=rooms, players=players)


@status_router.get("/health", response_model=HealthResponse)
def health(registry: RoomRegistry = Depends(get_registry)):
    rooms, players = registry.stats()
    return HealthResponse(status="ok", rooms=rooms, players=players)

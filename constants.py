import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

SERVER_NAME = os.getenv("SERVER_NAME", "HarramBall")

DEFAULT_MAX_PLAYERS = int(os.getenv("DEFAULT_MAX_PLAYERS", 20))

# Per-connection outbound buffer; messages beyond this are dropped for that receiver
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))

# Websocket keepalive, handed to uvicorn
WS_PING_INTERVAL = float(os.getenv("WS_PING_INTERVAL", 25))
WS_PING_TIMEOUT = float(os.getenv("WS_PING_TIMEOUT", 60))

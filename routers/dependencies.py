from fastapi import Request

from registry import RoomRegistry


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry

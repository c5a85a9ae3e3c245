"""
Seat tokens: signed JWTs binding a player id to one room.
A client keeps its token and presents it to reclaim the same seat after a
disconnect (WebSocket ?token= or Authorization: Bearer on HTTP).
"""

from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from coalition.config import SEAT_TOKEN_SECRET, SEAT_TOKEN_TTL_HOURS

ALGORITHM = "HS256"
security = HTTPBearer(auto_error=False)


def create_seat_token(room_id: str, player_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=SEAT_TOKEN_TTL_HOURS)
    payload = {"sub": player_id, "room": room_id, "exp": expire}
    return jwt.encode(payload, SEAT_TOKEN_SECRET, algorithm=ALGORITHM)


def decode_seat_token(token: str) -> tuple[str, str] | None:
    """Return (room_id, player_id), or None for a bad or expired token."""
    try:
        payload = jwt.decode(token, SEAT_TOKEN_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None
    room_id = payload.get("room")
    player_id = payload.get("sub")
    if not room_id or not player_id:
        return None
    return room_id, player_id


def seat_for_room(token: str | None, room_id: str) -> str | None:
    """Player id if token is a valid seat token for this room."""
    if not token:
        return None
    decoded = decode_seat_token(token)
    if decoded is None or decoded[0] != room_id:
        return None
    return decoded[1]


def get_seat_token_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    if not credentials:
        return None
    return credentials.credentials

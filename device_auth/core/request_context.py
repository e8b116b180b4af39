"""
Request context provider — who is calling, from which device.

Clients identify their device with the `X-Device-Id` header (an opaque
string the client generates once and keeps) and may send a hardware
identifier in `X-Mac-Id`.  IP and user-agent come from the transport.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

DEVICE_ID_HEADER = "X-Device-Id"
MAC_ID_HEADER = "X-Mac-Id"
MAX_DEVICE_ID_LENGTH = 256


@dataclass(frozen=True)
class DeviceContext:
    device_id: str
    mac_id: str | None
    ip_address: str | None
    user_agent: str | None


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


async def get_device_context(request: Request) -> DeviceContext:
    """FastAPI dependency — 400 when the device header is missing."""
    device_id = (request.headers.get(DEVICE_ID_HEADER) or "").strip()
    if not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing device identifier",
        )
    if len(device_id) > MAX_DEVICE_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid device identifier",
        )
    return DeviceContext(
        device_id=device_id,
        mac_id=request.headers.get(MAC_ID_HEADER),
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

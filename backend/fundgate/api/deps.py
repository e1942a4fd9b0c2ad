from __future__ import annotations

from fastapi import HTTPException, Request

from fundgate.core.clock import Clock, system_clock
from fundgate.core.transfer import TransferPort
from fundgate.core.transfer import get_transfer_port as _default_transfer_port

CALLER_HEADER = "X-Caller-Id"


async def get_caller(request: Request) -> str:
    """Opaque caller identity supplied by the fronting environment."""
    caller = request.headers.get(CALLER_HEADER, "").strip()
    if not caller:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    return caller


def get_clock() -> Clock:
    return system_clock


def get_transfer_port() -> TransferPort:
    return _default_transfer_port()

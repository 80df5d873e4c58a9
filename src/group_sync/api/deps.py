"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection

from group_sync.services.messaging_view import MessagingView


def get_view(conn: HTTPConnection) -> MessagingView:
    view = getattr(conn.app.state, "view", None)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Messaging view is not mounted",
        )
    return view


ViewDep = Annotated[MessagingView, Depends(get_view)]

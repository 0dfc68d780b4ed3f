from __future__ import annotations

import contextvars
import uuid
from typing import Optional

REQUEST_ID = contextvars.ContextVar("request_id", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex


def set_request_id(request_id: str) -> contextvars.Token:
    return REQUEST_ID.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    REQUEST_ID.reset(token)


def get_request_id() -> Optional[str]:
    return REQUEST_ID.get()

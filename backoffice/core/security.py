from __future__ import annotations

from fastapi import Header
from pydantic import BaseModel

from backoffice.core.config import get_settings


class Actor(BaseModel):
    """Who is performing a stock-affecting operation.

    Authentication happens upstream; the back-office only carries the
    identity through to the movement ledger's ``created_by`` columns.
    """

    id: str | None = None
    name: str

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, name=get_settings().default_actor_name)


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    actor_id = x_actor_id.strip() if x_actor_id and x_actor_id.strip() else None
    if x_actor_name and x_actor_name.strip():
        return Actor(id=actor_id, name=x_actor_name.strip())
    return Actor(id=actor_id, name=get_settings().default_actor_name)

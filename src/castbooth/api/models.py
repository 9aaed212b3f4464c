"""Pydantic models for the presentation API."""

from typing import Any

from pydantic import BaseModel

from castbooth.domain.identity import Role


class RoleSelection(BaseModel):
    """Role chosen on the role selection screen."""

    role: Role


class ActionResult(BaseModel):
    """Outcome of a lifecycle action."""

    accepted: bool
    state: dict[str, Any]

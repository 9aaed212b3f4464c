"""Domain models for caller identity and roles."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Which side of a booking the caller is acting on."""

    CUSTOMER = "customer"
    ACTOR = "actor"


@dataclass(frozen=True)
class IdentityHandle:
    """Represents a resolved caller identity."""

    uid: str
    is_anonymous: bool = True

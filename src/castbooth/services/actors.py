"""Counterparty selection for new sessions."""

from dataclasses import dataclass
from typing import Protocol


class ActorSelector(Protocol):
    """Chooses which actor a new session is booked with."""

    def select_actor(self, customer_id: str) -> str:
        """Return the actor id for a customer's new session."""


@dataclass
class FixedActorSelector(ActorSelector):
    """Books every session with one configured actor.

    Stand-in until a real actor-selection step exists.
    """

    actor_id: str

    def select_actor(self, customer_id: str) -> str:
        """Return the configured actor id."""
        return self.actor_id

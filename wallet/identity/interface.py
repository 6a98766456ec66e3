"""
Identity Interfaces

The ledger never authenticates anybody. It trusts the actor IDs it is
given and only asks the identity side whether a transfer recipient exists.

Two roles:
- ActorDirectory: who exists (shared by everyone)
- IdentityProvider: who is acting right now (one per session)
"""

from abc import ABC, abstractmethod
from typing import Optional

from wallet.models.actor import ActorProfile


class ActorDirectory(ABC):
    """Lookup of known actors."""

    @abstractmethod
    def resolve_actor(self, actor_id: str) -> Optional[ActorProfile]:
        """Return the actor's profile, or None if no such actor exists."""
        pass

    @abstractmethod
    def find_actors_by_name_fragment(self, text: str) -> list[ActorProfile]:
        """
        Find actors whose name or email contains `text` (case-insensitive).

        An empty fragment matches nobody.
        """
        pass


class IdentityProvider(ActorDirectory):
    """An actor directory that also knows who is currently signed in."""

    @abstractmethod
    def current_actor_id(self) -> Optional[str]:
        """ID of the signed-in actor, or None."""
        pass


class IdentityError(Exception):
    """Base exception for identity operations."""
    pass


class DuplicateEmailError(IdentityError):
    """An actor with this email is already registered."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"An account with email {email} already exists")


class InvalidCredentialsError(IdentityError):
    """Email/password pair did not match a registered actor."""

    def __init__(self):
        super().__init__("Invalid email or password")

"""
Actor Models

An actor is whoever owns an account in the ledger.
The ledger only ever sees actor IDs; profiles are for display and lookup.
"""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from wallet.models.transaction import utcnow


class ActorProfile(BaseModel):
    """Public view of an actor, safe to hand to the presentation layer."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Stable actor ID used by the ledger"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        pattern=r"^[^@\s]+@[^@\s]+$",
        description="Sign-in email, unique per actor"
    )
    created_at: datetime = Field(default_factory=utcnow)


class ActorRecord(BaseModel):
    """
    What storage keeps for one actor: the profile and its password hash.

    Never shown to the presentation layer.
    """
    model_config = ConfigDict(frozen=True)

    profile: ActorProfile
    password_salt: str = Field(..., min_length=1, description="Hex-encoded salt")
    password_hash: str = Field(..., min_length=1, description="Hex-encoded PBKDF2 digest")

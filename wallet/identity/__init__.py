"""Identity package."""

from wallet.identity.interface import (
    ActorDirectory,
    DuplicateEmailError,
    IdentityError,
    IdentityProvider,
    InvalidCredentialsError,
)
from wallet.identity.directory import InMemoryIdentityDirectory, IdentitySession

__all__ = [
    "ActorDirectory",
    "DuplicateEmailError",
    "IdentityError",
    "IdentityProvider",
    "InMemoryIdentityDirectory",
    "IdentitySession",
    "InvalidCredentialsError",
]

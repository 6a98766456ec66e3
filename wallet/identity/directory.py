"""
In-Memory Identity Directory

Reference implementation of the identity collaborator: registration,
sign-in and actor search. Passwords are kept only as salted PBKDF2
hashes, never in the clear.

The directory itself lives in memory. Persistent backends store an
ActorRecord per registration and hand them back to restore() at startup.
"""

import hashlib
import hmac
import secrets
import threading
from typing import Iterable, NamedTuple, Optional

from wallet.identity.interface import (
    ActorDirectory,
    DuplicateEmailError,
    IdentityProvider,
    InvalidCredentialsError,
)
from wallet.models.actor import ActorProfile, ActorRecord


PBKDF2_ITERATIONS = 200_000


class _Credential(NamedTuple):
    salt: bytes
    digest: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)


class InMemoryIdentityDirectory(ActorDirectory):
    """
    Registry of actors and their credentials.

    Shared by every session of the application.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._actors: dict[str, ActorProfile] = {}
        self._ids_by_email: dict[str, str] = {}
        self._credentials: dict[str, _Credential] = {}

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def register(self, name: str, email: str, password: str) -> ActorProfile:
        """
        Create a new actor.

        Raises:
            DuplicateEmailError: If the email is already registered
            ValueError: If name, email or password are invalid
        """
        if not password:
            raise ValueError("Password cannot be empty")
        email = self._normalize_email(email)
        profile = ActorProfile(name=name, email=email)

        salt = secrets.token_bytes(16)
        credential = _Credential(salt=salt, digest=_hash_password(password, salt))

        with self._lock:
            if email in self._ids_by_email:
                raise DuplicateEmailError(email)
            self._actors[profile.id] = profile
            self._ids_by_email[email] = profile.id
            self._credentials[profile.id] = credential
        return profile

    def export_record(self, actor_id: str) -> ActorRecord:
        """The storable form of a registered actor, hash included."""
        with self._lock:
            profile = self._actors[actor_id]
            credential = self._credentials[actor_id]
        return ActorRecord(
            profile=profile,
            password_salt=credential.salt.hex(),
            password_hash=credential.digest.hex(),
        )

    def restore(self, records: Iterable[ActorRecord]) -> int:
        """
        Load previously stored actors.

        Returns the number of actors restored.

        Raises:
            DuplicateEmailError: If two actors claim the same email
        """
        count = 0
        with self._lock:
            for record in records:
                profile = record.profile
                email = self._normalize_email(profile.email)
                owner = self._ids_by_email.get(email)
                if owner is not None and owner != profile.id:
                    raise DuplicateEmailError(email)
                self._actors[profile.id] = profile
                self._ids_by_email[email] = profile.id
                self._credentials[profile.id] = _Credential(
                    salt=bytes.fromhex(record.password_salt),
                    digest=bytes.fromhex(record.password_hash),
                )
                count += 1
        return count

    def forget(self, actor_id: str) -> None:
        """Undo a registration that could not be stored."""
        with self._lock:
            profile = self._actors.pop(actor_id, None)
            self._credentials.pop(actor_id, None)
            if profile is not None:
                self._ids_by_email.pop(profile.email, None)

    def authenticate(self, email: str, password: str) -> ActorProfile:
        """
        Check an email/password pair.

        Raises:
            InvalidCredentialsError: If the pair does not match
        """
        email = self._normalize_email(email)
        with self._lock:
            actor_id = self._ids_by_email.get(email)
            credential = self._credentials.get(actor_id) if actor_id else None
        if credential is None:
            raise InvalidCredentialsError()
        if not hmac.compare_digest(_hash_password(password, credential.salt), credential.digest):
            raise InvalidCredentialsError()
        return self._actors[actor_id]

    def resolve_actor(self, actor_id: str) -> Optional[ActorProfile]:
        return self._actors.get(actor_id)

    def find_actors_by_name_fragment(self, text: str) -> list[ActorProfile]:
        fragment = (text or "").strip().lower()
        if not fragment:
            return []
        with self._lock:
            actors = list(self._actors.values())
        return [
            actor for actor in actors
            if fragment in actor.name.lower() or fragment in actor.email.lower()
        ]


class IdentitySession(IdentityProvider):
    """
    One user's view of the directory: who is signed in here.

    Registering signs the new actor in, like the sign-up form does.
    """

    def __init__(self, directory: InMemoryIdentityDirectory):
        self._directory = directory
        self._current: Optional[ActorProfile] = None

    @property
    def directory(self) -> InMemoryIdentityDirectory:
        return self._directory

    @property
    def current_actor(self) -> Optional[ActorProfile]:
        return self._current

    def register(self, name: str, email: str, password: str) -> ActorProfile:
        self._current = self._directory.register(name, email, password)
        return self._current

    def sign_in(self, email: str, password: str) -> ActorProfile:
        self._current = self._directory.authenticate(email, password)
        return self._current

    def sign_out(self) -> None:
        self._current = None

    def current_actor_id(self) -> Optional[str]:
        return self._current.id if self._current else None

    def resolve_actor(self, actor_id: str) -> Optional[ActorProfile]:
        return self._directory.resolve_actor(actor_id)

    def find_actors_by_name_fragment(self, text: str) -> list[ActorProfile]:
        return self._directory.find_actors_by_name_fragment(text)

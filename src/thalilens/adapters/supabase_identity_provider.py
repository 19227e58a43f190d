"""Resolve Supabase Auth access tokens to user ids."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from supabase import Client

from thalilens.errors import NotAuthenticatedError


class IdentityProvider(Protocol):
    """Maps a bearer token to the authenticated user's id."""

    def resolve(self, access_token: str) -> UUID:
        """Return the uid for a token or raise NotAuthenticatedError."""


@dataclass
class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by Supabase Auth."""

    client: Client

    def resolve(self, access_token: str) -> UUID:
        """Validate the token with Supabase Auth and return its uid."""
        if not access_token:
            raise NotAuthenticatedError("User not authenticated")
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as exc:
            raise NotAuthenticatedError("User not authenticated") from exc
        if response is None or response.user is None:
            raise NotAuthenticatedError("User not authenticated")
        return UUID(str(response.user.id))

"""
civiclink/services/identity_provider.py

Purpose: Firebase Authentication integration

- Reads the provider's view of a user (verified email, phone number)
- Mirrors profile fields into custom claims
- Verifies ID tokens for authenticated endpoints
- Wraps every provider failure in ExternalProviderError
"""

import asyncio
from typing import Optional, Dict, Any, Union

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError
from google.auth.exceptions import GoogleAuthError
from pydantic import BaseModel

from civiclink.core.config import settings
from civiclink.core.exceptions import ExternalProviderError, AuthenticationError
from civiclink.core.logging import get_logger
from civiclink.utils.mongo_utils import serialize_document

logger = get_logger(__name__)

# Errors the Admin SDK raises for lookups, bad input and credential problems
PROVIDER_ERRORS = (FirebaseError, GoogleAuthError, ValueError, OSError)


class ProviderUser(BaseModel):
    """The identity provider's record for an account."""
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    phone_number: Optional[str] = None


class Enriched(BaseModel):
    """Verification state was fetched from the provider."""
    user: ProviderUser


class EnrichmentUnavailable(BaseModel):
    """The provider could not be reached; callers continue without it."""
    reason: str


Enrichment = Union[Enriched, EnrichmentUnavailable]


class FirebaseIdentityProvider:
    """
    Thin async wrapper over firebase_admin.auth.
    The Admin SDK is blocking, so calls run in a worker thread.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self._app = app

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app()
        except ValueError:
            if settings.FIREBASE_CREDENTIALS_FILE:
                cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_FILE)
            else:
                cred = credentials.ApplicationDefault()

            options = {}
            if settings.FIREBASE_PROJECT_ID:
                options["projectId"] = settings.FIREBASE_PROJECT_ID

            self._app = firebase_admin.initialize_app(cred, options)
            logger.info("Firebase app initialized")

        return self._app

    async def get_user(self, firebase_id: str) -> ProviderUser:
        """
        Fetches the provider record for a user.

        Raises:
            ExternalProviderError: If the user is unknown or the call fails
        """
        try:
            record = await asyncio.to_thread(auth.get_user, firebase_id, app=self._get_app())
        except PROVIDER_ERRORS as e:
            raise ExternalProviderError(f"Identity provider lookup failed: {e}") from e

        return ProviderUser(
            uid=record.uid,
            email=record.email,
            email_verified=bool(record.email_verified),
            phone_number=record.phone_number,
        )

    async def set_custom_claims(self, firebase_id: str, claims: Dict[str, Any]) -> None:
        """
        Replaces the user's custom claims.

        Raises:
            ExternalProviderError: If the call fails
        """
        try:
            await asyncio.to_thread(
                auth.set_custom_user_claims,
                firebase_id,
                serialize_document(claims),
                app=self._get_app(),
            )
        except PROVIDER_ERRORS as e:
            raise ExternalProviderError(f"Failed to set custom claims: {e}") from e

    async def verify_id_token(self, token: str) -> str:
        """
        Verifies an ID token and returns the provider user ID.

        Raises:
            AuthenticationError: If the token is invalid or expired
        """
        try:
            decoded = await asyncio.to_thread(auth.verify_id_token, token, app=self._get_app())
        except PROVIDER_ERRORS as e:
            raise AuthenticationError("Invalid authentication token") from e
        return decoded["uid"]

    async def fetch_verification(self, firebase_id: str) -> Enrichment:
        """
        Best-effort fetch of the provider's verification state.

        Args:
            firebase_id: Identity-provider user ID

        Returns:
            Enriched on success, EnrichmentUnavailable otherwise (never raises)
        """
        try:
            user = await self.get_user(firebase_id)
        except ExternalProviderError as e:
            logger.warning(f"Verification state unavailable for {firebase_id}: {e.message}")
            return EnrichmentUnavailable(reason=e.message)
        return Enriched(user=user)


# Global identity provider instance
_identity_provider: Optional[FirebaseIdentityProvider] = None


def get_identity_provider() -> FirebaseIdentityProvider:
    """Get or create the global identity provider instance."""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = FirebaseIdentityProvider()
    return _identity_provider

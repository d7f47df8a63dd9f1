# apps/core/auth_service.py

"""
Authentication service - signup, credential check and signed bearer tokens

Tokens are `TimestampSigner` signatures over the user id, so they need no
storage: a token is valid while the signature matches and it is younger than
AUTH_TOKEN_MAX_AGE. Deactivating the user revokes every token at once.
"""

import logging
from typing import Dict, Optional

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.core import signing

logger = logging.getLogger(__name__)

User = get_user_model()


class AuthenticationService:
    """Issues and resolves bearer tokens"""

    salt = 'apps.core.auth_service.bearer'

    def __init__(self, max_age=None):
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age if self._max_age is not None else settings.AUTH_TOKEN_MAX_AGE

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Authenticates by username, then by e-mail"""
        user = authenticate(username=username, password=password)

        if not user and username and '@' in username:
            user_obj = User.objects.filter(email__iexact=username, is_active=True).first()
            if user_obj:
                user = authenticate(username=user_obj.username, password=password)

        if not user:
            logger.info("⚠️ Failed login for %s", username)
        return user

    def register(self, data: Dict) -> User:
        """Creates an account from validated signup data"""
        user = User.objects.create_user(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            first_name=data['first_name'],
            last_name=data.get('last_name', ''),
        )
        logger.info("👤 New account %s", user.username)
        return user

    def issue_token(self, user) -> str:
        return self._signer().sign(str(user.pk))

    def resolve_token(self, token: str) -> Optional[User]:
        """Returns the active user behind a token, or None"""
        if not token:
            return None
        try:
            user_id = self._signer().unsign(token, max_age=self.max_age)
        except signing.SignatureExpired:
            logger.debug("Expired bearer token")
            return None
        except signing.BadSignature:
            logger.debug("Invalid bearer token")
            return None

        return User.objects.filter(pk=user_id, is_active=True).first()

    def _signer(self):
        return signing.TimestampSigner(salt=self.salt)


# Process-wide instance
auth_service = AuthenticationService()

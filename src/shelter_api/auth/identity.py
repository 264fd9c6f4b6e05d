"""
Identity Resolver

Turns a bearer token into the Actor the lifecycle core works with. Tokens are
HS256 JWTs whose ``id`` claim names an account; the account must still exist
and be active when the token is presented.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

import jwt
from loguru import logger

from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.exceptions import Unauthenticated
from shelter_api.lifecycle.models import Account
from shelter_api.lifecycle.models import Actor


class IdentityResolver:
    """Resolve and issue access tokens."""

    def __init__(
        self,
        store: LifecycleStore,
        secret: str,
        algorithm: str = "HS256",
        expiration_hours: int = 168,
    ):
        self.store = store
        self.secret = secret
        self.algorithm = algorithm
        self.expiration_hours = expiration_hours

    def issue(self, account: Account) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": account.id,
            "role": account.role.value,
            "iat": now,
            "exp": now + timedelta(hours=self.expiration_hours),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def resolve(self, token: str) -> Actor:
        """
        Validate the token and load the account it names.

        The role always comes from the stored account, never from the token.

        Raises
        ------
        Unauthenticated
            Token is malformed, expired, or names a missing/inactive account
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired access token")
            raise Unauthenticated("Token expired")
        except jwt.InvalidTokenError as e:
            logger.info("Rejected invalid access token", error=str(e))
            raise Unauthenticated("Invalid token")

        account_id = payload.get("id")
        if not isinstance(account_id, int):
            raise Unauthenticated("Invalid token")

        async with self.store.session() as session:
            account = await session.get_account(account_id)

        if account is None or not account.is_active:
            logger.info("Token names unknown or inactive account", account_id=account_id)
            raise Unauthenticated("Invalid token or user not active")

        return account.as_actor()

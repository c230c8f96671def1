# helix_alm/workflows/token_refresher.py

from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from ..api import HelixALMAPI
from ..auth import AuthSession
from ..exceptions import HelixALMAPIError, HelixALMError
from ..logger import logger
from ..models import AccessToken

T = TypeVar("T")

UNAUTHORIZED = 401


class TokenRefresher:
    """
    Keeps an ``AuthSession`` supplied with a token.

    ``call`` runs one operation with the current token. If the server
    answers 401 the token is requested again and the operation is retried
    once; a second failure is raised to the caller.
    """

    def __init__(self, api: HelixALMAPI, session: AuthSession, leeway: float = 30.0):
        self.api = api
        self.session = session
        self.leeway = leeway

    async def acquire(self) -> AccessToken:
        logger.info(f"Requesting access token for project {self.session.project}")
        self.session.begin()
        try:
            token = await self.api.get_token(
                self.session.project, self.session.credentials
            )
        except HelixALMError:
            self.session.fail()
            raise
        self.session.accept(token)
        logger.info(f"Access token valid until {token.expires_on or 'unknown'}")
        return token

    async def ensure_token(self, now: Optional[datetime] = None) -> AccessToken:
        if self.session.needs_token(now=now, leeway=self.leeway):
            return await self.acquire()
        return self.session.token

    async def call(self, operation: Callable[[AccessToken], Awaitable[T]]) -> T:
        token = await self.ensure_token()
        try:
            return await operation(token)
        except HelixALMAPIError as e:
            if e.status_code != UNAUTHORIZED:
                raise
            logger.warning("Access token rejected (401), requesting a new one")
        token = await self.acquire()
        return await operation(token)

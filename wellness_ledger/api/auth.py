"""
Bearer API keys for the ledger API

API_KEYS entries are either a bare key, which may act for any user (the
chat backend), or "key:uid", which may only touch /users/{uid} paths (a
single client app). Keys are read from config on every request.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
from fastapi import Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from wellness_ledger import config
from wellness_ledger.exceptions import AuthenticationError, AuthorizationError, ConfigurationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    """Who is calling: uid is None for keys that may act for any user"""
    key_hint: str
    uid: Optional[str] = None

    def may_act_for(self, user_id: str) -> bool:
        return self.uid is None or self.uid == user_id


def parse_api_keys(entries: Iterable[str]) -> Dict[str, Optional[str]]:
    """Map each key to the uid it is scoped to (None for unscoped keys)"""
    keys: Dict[str, Optional[str]] = {}
    for entry in entries:
        key, _, uid = entry.partition(":")
        if key.strip():
            keys[key.strip()] = uid.strip() or None
    return keys


async def verify_api_key(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> Caller:
    """
    Resolve the caller and check it may act for the path's user_id

    Raises:
        ConfigurationError: no keys configured (503)
        AuthenticationError: missing or unknown key (401)
        AuthorizationError: scoped key used for another user (403)
    """
    keys = parse_api_keys(config.API_KEYS)
    if not keys:
        raise ConfigurationError("No API keys configured; rejecting all requests", config_key="API_KEYS")

    if credentials is None:
        raise AuthenticationError()
    if credentials.credentials not in keys:
        raise AuthenticationError(f"Unknown API key {credentials.credentials[:4]}...")

    caller = Caller(key_hint=credentials.credentials[:4], uid=keys[credentials.credentials])
    user_id = request.path_params.get("user_id")
    if user_id is not None and not caller.may_act_for(user_id):
        raise AuthorizationError(user_id)
    return caller

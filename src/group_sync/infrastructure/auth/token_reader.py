from __future__ import annotations

import jwt

from group_sync.application.dto.principal import Principal
from group_sync.domain.value_objects.ids import UserId


class JwtTokenReader:
    """Read the signed-in user from the session JWT.

    The signature is only checked when a secret is configured; otherwise the
    backend remains the party that validates the token.
    """

    def __init__(
        self,
        secret: str = "",
        algorithm: str = "HS256",
        user_id_claim: str = "sub",
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._user_id_claim = user_id_claim

    def read(self, token: str) -> Principal:
        if self._secret:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        else:
            payload = jwt.decode(token, options={"verify_signature": False})
        try:
            user_id = int(payload[self._user_id_claim])
        except (KeyError, TypeError, ValueError) as exc:
            raise jwt.InvalidTokenError(
                f"claim {self._user_id_claim!r} does not hold a user id"
            ) from exc
        return Principal(
            user_id=UserId(user_id),
            username=payload.get("username") or payload.get("preferred_username"),
        )

"""
Token Verifier: проверка bearer-токенов (JWT) по ключам из JWKS.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt

from .errors import MalformedTokenError, SignatureInvalidError, TokenExpiredError
from .jwks import KeyResolver


@dataclass(frozen=True)
class IdentityClaims:
    """
    Проверенные claims токена.

    :param subject: Идентификатор пользователя (claim sub)
    :param claims: Все claims токена
    """
    subject: str
    claims: Dict[str, Any] = field(default_factory=dict)


class TokenVerifier:
    """
    Проверка токена в три шага: заголовок без проверки подписи,
    ключ по kid через KeyResolver, проверка подписи и сроков.

    Алгоритм задаётся конфигурацией; alg из заголовка токена используется
    только для сверки с ним.
    """

    def __init__(
        self,
        resolver: KeyResolver,
        algorithm: str = "ES256",
        audience: Optional[str] = None,
        leeway: float = 0.0,
    ):
        self.resolver = resolver
        self.algorithm = algorithm
        self.audience = audience
        self.leeway = leeway

    async def verify(self, token: str) -> IdentityClaims:
        """
        Проверить токен.

        :param token: Bearer-токен
        :return: IdentityClaims с subject из claim sub
        :raises InvalidTokenError: Один из подклассов, в зависимости от причины
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError(f"Не удалось разобрать токен: {exc}") from exc

        alg = header.get("alg")
        if alg != self.algorithm:
            raise SignatureInvalidError(f"Алгоритм {alg!r} не допускается, ожидается {self.algorithm}")
        kid = header.get("kid")
        if not kid:
            raise MalformedTokenError("В заголовке токена нет kid")

        key = await self.resolver.resolve(kid)

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                audience=self.audience,
                leeway=self.leeway,
                options={"require": ["sub"], "verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError("Срок действия токена истёк") from exc
        except jwt.ImmatureSignatureError as exc:
            raise TokenExpiredError("Токен ещё не действителен (nbf)") from exc
        except jwt.MissingRequiredClaimError as exc:
            raise MalformedTokenError(f"В токене нет claim {exc.claim}") from exc
        except jwt.InvalidTokenError as exc:
            raise SignatureInvalidError(f"Токен не прошёл проверку: {exc}") from exc
        except (TypeError, ValueError) as exc:
            # ключ из JWKS другого типа, чем ожидаемый алгоритм
            raise SignatureInvalidError(f"Ключ {kid} не подходит для {self.algorithm}: {exc}") from exc

        logging.debug(f"[Auth] Токен проверен: sub={payload['sub']}, kid={kid}")
        return IdentityClaims(subject=str(payload["sub"]), claims=payload)

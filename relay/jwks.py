"""
Key Resolver: получение и кэширование публичных ключей подписи из JWKS.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from .errors import KeyResolutionError


@dataclass
class CachedKey:
    key: Any
    fetched_at: float


class KeyResolver:
    """
    Кэш ключей по kid с ограниченным временем жизни.

    Свежий ключ отдаётся из кэша без сетевых запросов. Устаревший или
    отсутствующий ключ тянется из JWKS; параллельные запросы одного и того же
    kid ждут один общий запрос.

    :param jwks_url: Полный URL JWKS-документа
    :param ttl: Время жизни записи кэша, сек
    :param timeout: Таймаут HTTP-запроса, сек
    :param transport: Транспорт httpx (для тестов), по умолчанию сетевой
    :param clock: Источник монотонного времени
    """

    def __init__(
        self,
        jwks_url: str,
        ttl: float = 600.0,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.jwks_url = jwks_url
        self.ttl = ttl
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._cache: Dict[str, CachedKey] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def _is_fresh(self, entry: CachedKey) -> bool:
        return self._clock() - entry.fetched_at < self.ttl

    def cached(self, kid: str) -> Optional[Any]:
        """
        Ключ из кэша, если он есть и не устарел.
        """
        entry = self._cache.get(kid)
        if entry is not None and self._is_fresh(entry):
            return entry.key
        return None

    def invalidate(self, kid: Optional[str] = None) -> None:
        """
        Сбросить одну запись кэша или весь кэш.
        """
        if kid is None:
            self._cache.clear()
        else:
            self._cache.pop(kid, None)

    async def resolve(self, kid: str) -> Any:
        """
        Вернуть публичный ключ для kid.

        :param kid: Идентификатор ключа из заголовка токена
        :return: Публичный ключ (объект cryptography)
        :raises KeyResolutionError: Сеть, разбор JWKS, нет такого kid, битый ключ
        """
        if not kid:
            raise KeyResolutionError("Пустой kid")

        key = self.cached(kid)
        if key is not None:
            logging.debug(f"[JWKS] Ключ {kid} из кэша")
            return key

        task = self._inflight.get(kid)
        if task is None:
            task = asyncio.ensure_future(self._fetch(kid))
            self._inflight[kid] = task
            task.add_done_callback(lambda t: self._fetch_done(kid, t))
        # shield: отмена одного ожидающего не должна отменять общий запрос
        return await asyncio.shield(task)

    def _fetch_done(self, kid: str, task: asyncio.Task) -> None:
        if self._inflight.get(kid) is task:
            del self._inflight[kid]
        if not task.cancelled():
            # помечаем исключение как полученное, даже если все ожидающие ушли
            task.exception()

    async def _fetch(self, kid: str) -> Any:
        logging.info(f"[JWKS] Запрос ключей {self.jwks_url} (kid={kid})")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.jwks_url)
                response.raise_for_status()
            document = response.json()
        except httpx.HTTPError as exc:
            raise KeyResolutionError(f"Ошибка запроса JWKS: {exc}", cause=exc) from exc
        except ValueError as exc:
            raise KeyResolutionError(f"JWKS не является JSON: {exc}", cause=exc) from exc

        keys = document.get("keys") if isinstance(document, dict) else None
        if not isinstance(keys, list):
            raise KeyResolutionError("В JWKS нет списка keys")

        fetched_at = self._clock()
        found = None
        for jwk in keys:
            if not isinstance(jwk, dict) or not jwk.get("kid"):
                continue
            try:
                key = jwt.PyJWK(jwk).key
            except (jwt.PyJWTError, ValueError) as exc:
                if jwk["kid"] == kid:
                    raise KeyResolutionError(f"Некорректный ключ {kid}: {exc}", cause=exc) from exc
                logging.warning(f"[JWKS] Пропущен некорректный ключ {jwk['kid']}: {exc}")
                continue
            self._cache[jwk["kid"]] = CachedKey(key, fetched_at)
            if jwk["kid"] == kid:
                found = key

        if found is None:
            raise KeyResolutionError(f"Ключ {kid} не найден в JWKS")
        logging.info(f"[JWKS] Получено ключей: {len(keys)}, kid={kid} найден")
        return found

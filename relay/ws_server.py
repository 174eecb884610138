"""
WebSocket сервер. Авторизует подключения и пересылает сообщения между ними.
"""

import asyncio
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

from .auth import TokenVerifier
from .broadcast import RelayEngine
from .config import Settings
from .errors import AuthError, InvalidTokenError, MissingTokenError
from .jwks import KeyResolver
from .registry import ConnectionRegistry
from .static import make_process_request
from .utils import mask_token, query_param

auth_logger = logging.getLogger("auth_diag")


class ConnectionLifecycle:
    """
    Жизненный цикл одного подключения: авторизация, регистрация,
    цикл приёма сообщений, удаление из реестра.

    :param registry: Реестр открытых соединений
    :param relay: Рассылка сообщений
    :param verifier: Проверка токенов; None - авторизация выключена
    :param auth_timeout: Максимальное время проверки токена, сек
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        relay: RelayEngine,
        verifier: Optional[TokenVerifier] = None,
        auth_timeout: float = 5.0,
    ):
        self.registry = registry
        self.relay = relay
        self.verifier = verifier
        self.auth_timeout = auth_timeout

    async def authenticate(self, websocket) -> str:
        """
        Проверить токен из query-параметра token.

        :return: Идентификатор пользователя (sub)
        :raises AuthError: MissingTokenError или один из InvalidTokenError
        """
        token = query_param(websocket.request.path, "token")
        if token is None:
            raise MissingTokenError("Параметр token не передан")
        try:
            claims = await asyncio.wait_for(self.verifier.verify(token), self.auth_timeout)
        except asyncio.TimeoutError as exc:
            raise InvalidTokenError(
                f"Проверка токена {mask_token(token)} не уложилась в {self.auth_timeout} с"
            ) from exc
        return claims.subject

    async def handle(self, websocket):
        """
        Обработка одного WebSocket-клиента.
        """
        identity = None
        if self.verifier is not None:
            try:
                identity = await self.authenticate(websocket)
            except AuthError as exc:
                token = query_param(websocket.request.path, "token")
                logging.warning(f"Подключение отклонено ({exc.close_code} {exc.reason}): {exc}")
                auth_logger.info(
                    f"reject code={exc.close_code} error={type(exc).__name__} "
                    f"token={mask_token(token)} detail={exc}"
                )
                await websocket.close(exc.close_code, exc.reason)
                return
            except Exception as exc:
                logging.error(f"Ошибка проверки токена: {exc}", exc_info=True)
                auth_logger.info(f"reject code={InvalidTokenError.close_code} error={type(exc).__name__} detail={exc}")
                await websocket.close(InvalidTokenError.close_code, InvalidTokenError.reason)
                return

        if websocket.state is not State.OPEN:
            # клиент ушёл, пока проверялся токен
            logging.info(f"Клиент отключился до завершения авторизации: user={identity}")
            return

        self.registry.add(websocket, identity)
        logging.info(f"Клиент подключён: user={identity} ({len(self.registry)} всего)")
        try:
            async for message in websocket:
                await self.relay.dispatch(websocket, message)
        except ConnectionClosedError as exc:
            logging.info(f"Соединение оборвано: user={identity}, {exc}")
        finally:
            self.registry.remove(websocket)
            logging.info(f"Клиент отключён: user={identity} ({len(self.registry)} всего)")


def build_lifecycle(settings: Settings) -> ConnectionLifecycle:
    """
    Собрать обработчик подключений по настройкам.
    """
    registry = ConnectionRegistry()
    verifier = None
    if settings.AUTH_ENABLED:
        resolver = KeyResolver(
            settings.jwks_url,
            ttl=settings.JWKS_CACHE_TTL,
            timeout=settings.JWKS_FETCH_TIMEOUT,
        )
        verifier = TokenVerifier(
            resolver,
            algorithm=settings.JWT_ALGORITHM,
            audience=settings.JWT_AUDIENCE,
            leeway=settings.JWT_LEEWAY,
        )
    relay = RelayEngine(registry, partition_by_identity=settings.AUTH_ENABLED)
    return ConnectionLifecycle(registry, relay, verifier, auth_timeout=settings.AUTH_TIMEOUT)


async def run_ws_server(settings: Settings):
    """
    Запуск WS-сервера.
    """
    lifecycle = build_lifecycle(settings)
    process_request = make_process_request(settings.STATIC_ROOT, settings.WS_PATH)
    async with websockets.serve(lifecycle.handle, settings.HOST, settings.PORT, process_request=process_request):
        logging.info(f"Сервер запущен: http://localhost:{settings.PORT}")
        await asyncio.Future()

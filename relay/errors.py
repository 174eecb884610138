"""
Ошибки авторизации соединений.

Клиенту уходит только close-код и короткая причина из класса ошибки,
подробности (текст исключения, исходная причина) остаются в логах сервера.
"""


class AuthError(Exception):
    """
    Базовая ошибка авторизации соединения.

    :cvar close_code: WebSocket close-код, с которым закрывается соединение
    :cvar reason: Причина закрытия, которую видит клиент
    """
    close_code = 4003
    reason = "Invalid token"


class MissingTokenError(AuthError):
    """В запросе на подключение нет параметра token."""
    close_code = 4001
    reason = "Missing token"


class InvalidTokenError(AuthError):
    """Токен не прошёл проверку (общая ошибка для клиента)."""


class MalformedTokenError(InvalidTokenError):
    """Токен не удаётся разобрать: не три сегмента, битый base64/JSON, нет kid или sub."""


class KeyResolutionError(InvalidTokenError):
    """
    Не удалось получить публичный ключ для kid из токена.

    :param message: Описание ошибки
    :param cause: Исходное исключение (сеть, разбор JWKS, формат ключа), если есть
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class SignatureInvalidError(InvalidTokenError):
    """Подпись не сошлась или алгоритм не тот, что ожидается."""


class TokenExpiredError(InvalidTokenError):
    """Истёк exp или ещё не наступил nbf."""

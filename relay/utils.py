"""
Утилитарные функции (разбор query-строки, маскирование токенов для логов).
"""

from typing import Optional
from urllib.parse import parse_qs, urlsplit


def query_param(path: str, name: str) -> Optional[str]:
    """
    Достаёт значение параметра из query-части пути запроса.

    :param path: Путь запроса вместе с query-строкой, например "/?token=abc"
    :param name: Имя параметра
    :return: Первое значение параметра или None, если его нет или оно пустое
    """
    values = parse_qs(urlsplit(path).query).get(name)
    if not values or not values[0]:
        return None
    return values[0]


def mask_token(token: Optional[str], visible: int = 8) -> str:
    """
    Обрезает токен для логов: в лог попадают только первые символы.
    """
    if not token:
        return "<нет>"
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}..."

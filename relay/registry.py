"""
Реестр открытых WebSocket-соединений.
"""

from typing import Dict, Hashable, List, Optional, Tuple

_MISSING = object()


class ConnectionRegistry:
    """
    Набор открытых соединений с необязательной меткой пользователя.

    Все методы синхронные и ничего не ждут: в пределах одного event loop
    изменение реестра и снимок для рассылки не перемешиваются.
    """

    def __init__(self):
        self._connections: Dict[Hashable, Optional[str]] = {}

    def add(self, connection, identity: Optional[str] = None) -> None:
        """
        Зарегистрировать соединение. Повторный вызов для того же соединения ничего не меняет.
        """
        if connection not in self._connections:
            self._connections[connection] = identity

    def remove(self, connection) -> bool:
        """
        Удалить соединение. Можно вызывать сколько угодно раз.

        :return: True, если соединение было в реестре
        """
        return self._connections.pop(connection, _MISSING) is not _MISSING

    def identity_of(self, connection) -> Optional[str]:
        return self._connections.get(connection)

    def snapshot(self) -> List[Tuple[object, Optional[str]]]:
        """
        Копия содержимого реестра: пары (соединение, метка).
        """
        return list(self._connections.items())

    def __contains__(self, connection) -> bool:
        return connection in self._connections

    def __len__(self) -> int:
        return len(self._connections)


"""
Broadcast: выбор получателей и рассылка сообщений между соединениями.
"""

import logging
from typing import List, Union

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .registry import ConnectionRegistry

Message = Union[str, bytes]


class RelayEngine:
    """
    Пересылает входящее сообщение другим соединениям из реестра.

    :param registry: Реестр открытых соединений
    :param partition_by_identity: True - только соединениям с той же меткой
        пользователя, False - всем остальным соединениям
    """

    def __init__(self, registry: ConnectionRegistry, partition_by_identity: bool = True):
        self.registry = registry
        self.partition_by_identity = partition_by_identity

    def recipients(self, sender) -> List:
        """
        Получатели сообщения от sender по текущему снимку реестра.
        Отправитель в список не попадает.
        """
        entries = self.registry.snapshot()
        if not self.partition_by_identity:
            return [conn for conn, _ in entries if conn is not sender]
        identity = self.registry.identity_of(sender)
        if identity is None:
            return []
        return [conn for conn, label in entries if conn is not sender and label == identity]

    async def dispatch(self, sender, message: Message) -> int:
        """
        Разослать сообщение получателям без изменений.

        Ошибка отправки одному получателю не прерывает рассылку и не
        возвращается отправителю.

        :param sender: Соединение-отправитель
        :param message: Текст или байты, как пришли от клиента
        :return: Сколько получателей приняли сообщение
        """
        delivered = 0
        for ws in self.recipients(sender):
            if ws.state is not State.OPEN:
                continue
            try:
                await ws.send(message)
                delivered += 1
            except ConnectionClosed as exc:
                self.registry.remove(ws)
                logging.debug(f"[Relay] Получатель закрылся во время отправки: {exc}")
            except Exception as exc:
                logging.error(f"[Relay] Ошибка отправки данных ws-клиенту: {exc}")
        return delivered

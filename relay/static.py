"""
Отдача статики веб-клиента на том же порту, что и WebSocket.
"""

import email.utils
import http
import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlsplit

from websockets.datastructures import Headers
from websockets.http11 import Request, Response

MIME_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
}
DEFAULT_MIME_TYPE = "application/octet-stream"
INDEX_DOCUMENT = "index.html"


@dataclass
class Asset:
    body: bytes
    content_type: str


def resolve_asset(root: str, request_path: str) -> Optional[Asset]:
    """
    Найти файл для пути запроса.

    :param root: Каталог со статикой
    :param request_path: Путь запроса (query-строка игнорируется)
    :return: Asset или None, если файла нет или путь выходит за пределы root
    """
    path = unquote(urlsplit(request_path).path)
    if "\x00" in path:
        return None
    if path in ("", "/"):
        path = "/" + INDEX_DOCUMENT

    base = os.path.realpath(root)
    file_path = os.path.realpath(os.path.join(base, path.lstrip("/")))
    if os.path.commonpath([base, file_path]) != base:
        logging.warning(f"[Static] Запрос за пределы каталога статики: {request_path}")
        return None

    try:
        with open(file_path, "rb") as f:
            body = f.read()
    except OSError:
        return None

    ext = os.path.splitext(file_path)[1].lower()
    return Asset(body=body, content_type=MIME_TYPES.get(ext, DEFAULT_MIME_TYPE))


def http_response(status: http.HTTPStatus, body: bytes, content_type: str) -> Response:
    headers = Headers([
        ("Date", email.utils.formatdate(usegmt=True)),
        ("Connection", "close"),
        ("Content-Length", str(len(body))),
        ("Content-Type", content_type),
    ])
    return Response(status.value, status.phrase, headers, body)


def is_websocket_upgrade(request: Request) -> bool:
    return "websocket" in request.headers.get("Upgrade", "").lower()


def make_process_request(static_root: str, ws_path: str = "/"):
    """
    Хук process_request для websockets.serve.

    WebSocket-запросы на ws_path идут дальше в handshake, остальные
    WebSocket-запросы получают 404, обычные HTTP-запросы получают файл из static_root.
    """

    def process_request(connection, request: Request) -> Optional[Response]:
        if is_websocket_upgrade(request):
            if urlsplit(request.path).path == ws_path:
                return None
            return http_response(http.HTTPStatus.NOT_FOUND, b"Not found", "text/plain")

        asset = resolve_asset(static_root, request.path)
        if asset is None:
            logging.debug(f"[Static] 404 {request.path}")
            return http_response(http.HTTPStatus.NOT_FOUND, b"Not found", "text/plain")
        return http_response(http.HTTPStatus.OK, asset.body, asset.content_type)

    return process_request

"""
Общие фикстуры: ключи ES256, JWKS-эндпоинт на httpx.MockTransport,
фейковые соединения.
"""

import asyncio
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosedOK
from websockets.frames import Close
from websockets.http11 import Request
from websockets.protocol import State

from relay.jwks import KeyResolver

KID = "test-key-1"
JWKS_URL = "https://auth.example.test/auth/v1/.well-known/jwks.json"


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeConnection:
    """Минимальный двойник websockets ServerConnection."""

    def __init__(self, path="/", messages=(), state=State.OPEN, fail_with=None):
        self.request = Request(path, Headers())
        self.state = state
        self.sent = []
        self.closed_with = None
        self.fail_with = fail_with
        self._messages = list(messages)

    async def send(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)

    async def close(self, code=1000, reason=""):
        self.closed_with = (code, reason)
        self.state = State.CLOSED

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            await asyncio.sleep(0)
            yield message


def closed_error():
    return ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)


class JwksEndpoint:
    """JWKS-документ за httpx.MockTransport со счётчиком запросов."""

    def __init__(self, keys):
        self.keys = keys
        self.calls = 0
        self.status_code = 200
        self.delay = 0.0

    async def handler(self, request):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status_code, json={"keys": self.keys})

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def signing_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def public_jwk(signing_key):
    jwk = ECAlgorithm.to_jwk(signing_key.public_key(), as_dict=True)
    jwk.update({"kid": KID, "use": "sig", "alg": "ES256"})
    return jwk


@pytest.fixture
def rsa_jwk():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = RSAAlgorithm.to_jwk(key.public_key(), as_dict=True)
    jwk.update({"kid": "rsa-1", "use": "sig", "alg": "RS256"})
    return jwk


@pytest.fixture
def jwks_endpoint(public_jwk):
    return JwksEndpoint([public_jwk])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def resolver(jwks_endpoint, clock):
    return KeyResolver(JWKS_URL, ttl=600, timeout=1.0, transport=jwks_endpoint.transport, clock=clock)


@pytest.fixture
def make_token(signing_key):
    def _make(sub="user-1", kid=KID, key=None, algorithm="ES256", **claims):
        payload = {"sub": sub, "iat": int(time.time()), "exp": int(time.time()) + 3600}
        payload.update(claims)
        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(payload, key or signing_key, algorithm=algorithm, headers=headers)

    return _make

"""
Тесты KeyResolver: кэш с TTL, общий запрос для одного kid, ошибки JWKS.
"""

import asyncio

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from relay.errors import KeyResolutionError, InvalidTokenError
from relay.jwks import KeyResolver

from conftest import JWKS_URL, KID


class TestKeyCache:

    @pytest.mark.asyncio
    async def test_first_resolve_fetches_key(self, resolver, jwks_endpoint, signing_key):
        key = await resolver.resolve(KID)

        assert jwks_endpoint.calls == 1
        assert isinstance(key, ec.EllipticCurvePublicKey)
        assert key.public_numbers() == signing_key.public_key().public_numbers()

    @pytest.mark.asyncio
    async def test_key_not_refetched_within_ttl(self, resolver, jwks_endpoint, clock):
        first = await resolver.resolve(KID)
        clock.advance(599)
        second = await resolver.resolve(KID)

        assert second is first
        assert jwks_endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_stale_key_refetched_exactly_once(self, resolver, jwks_endpoint, clock):
        await resolver.resolve(KID)
        clock.advance(600)

        await resolver.resolve(KID)
        await resolver.resolve(KID)

        assert jwks_endpoint.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_fetch(self, resolver, jwks_endpoint):
        jwks_endpoint.delay = 0.05

        keys = await asyncio.gather(*(resolver.resolve(KID) for _ in range(5)))

        assert jwks_endpoint.calls == 1
        assert all(k is keys[0] for k in keys)

    @pytest.mark.asyncio
    async def test_all_keys_of_the_set_are_cached(self, resolver, jwks_endpoint, public_jwk):
        other = dict(public_jwk, kid="rotated-key")
        jwks_endpoint.keys = [public_jwk, other]

        await resolver.resolve(KID)
        await resolver.resolve("rotated-key")

        assert jwks_endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, resolver, jwks_endpoint):
        await resolver.resolve(KID)
        resolver.invalidate(KID)
        await resolver.resolve(KID)

        assert jwks_endpoint.calls == 2


class TestKeyResolutionErrors:

    @pytest.mark.asyncio
    async def test_unknown_kid(self, resolver):
        with pytest.raises(KeyResolutionError, match="не найден"):
            await resolver.resolve("missing")

    @pytest.mark.asyncio
    async def test_empty_kid(self, resolver, jwks_endpoint):
        with pytest.raises(KeyResolutionError):
            await resolver.resolve("")
        assert jwks_endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_http_error_carries_cause(self, resolver, jwks_endpoint):
        jwks_endpoint.status_code = 500

        with pytest.raises(KeyResolutionError) as exc_info:
            await resolver.resolve(KID)

        assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        resolver = KeyResolver(JWKS_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(KeyResolutionError) as exc_info:
            await resolver.resolve(KID)

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_not_json(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        resolver = KeyResolver(JWKS_URL, transport=transport)

        with pytest.raises(KeyResolutionError):
            await resolver.resolve(KID)

    @pytest.mark.asyncio
    async def test_malformed_key_material(self, resolver, jwks_endpoint, public_jwk):
        jwks_endpoint.keys = [dict(public_jwk, x="AAAA")]

        with pytest.raises(KeyResolutionError) as exc_info:
            await resolver.resolve(KID)

        assert exc_info.value.cause is not None

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self, resolver, jwks_endpoint):
        jwks_endpoint.status_code = 503
        with pytest.raises(KeyResolutionError):
            await resolver.resolve(KID)

        jwks_endpoint.status_code = 200
        await resolver.resolve(KID)

        assert jwks_endpoint.calls == 2

    def test_key_resolution_error_is_invalid_token(self):
        assert issubclass(KeyResolutionError, InvalidTokenError)

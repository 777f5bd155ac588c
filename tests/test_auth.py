from __future__ import annotations

import httpx

from storefront_payments.adapters.outbound.hosted_auth import HostedAuthenticator
from storefront_payments.adapters.outbound.static_auth import StaticTokenAuthenticator
from storefront_payments.core.domain.model.errors import AuthenticationError
from storefront_payments.core.domain.model.order import CustomerId


async def test_static_tokens() -> None:
    auth = StaticTokenAuthenticator(tokens={"tok": "user-1"})

    assert (await auth.current_user_id("tok")).unwrap() == CustomerId("user-1")
    assert isinstance(
        (await auth.current_user_id("other")).failure(), AuthenticationError
    )


async def test_hosted_auth_reads_user_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-42", "email": "a@b.c"})

    auth = HostedAuthenticator(
        auth_url="https://auth.test/auth/v1/",
        api_key="anon",
        transport=httpx.MockTransport(handler),
    )

    assert (await auth.current_user_id("jwt")).unwrap() == CustomerId("user-42")
    assert seen[0].url.path == "/auth/v1/user"
    assert seen[0].headers["Authorization"] == "Bearer jwt"
    assert seen[0].headers["apikey"] == "anon"
    await auth.aclose()


async def test_hosted_auth_rejections() -> None:
    for response in (
        httpx.Response(401, json={"msg": "expired"}),
        httpx.Response(500),
        httpx.Response(200, json={}),
    ):
        auth = HostedAuthenticator(
            auth_url="https://auth.test",
            api_key="anon",
            transport=httpx.MockTransport(lambda _, r=response: r),
        )
        assert isinstance(
            (await auth.current_user_id("jwt")).failure(), AuthenticationError
        )

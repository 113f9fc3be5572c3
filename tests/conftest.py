import os
import sys

import httpx
import pytest
import pytest_asyncio

# Add the project root to Python path so tests run without installing
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Configure pytest for async tests
pytest_plugins = ("pytest_asyncio",)

from ally_bitbucket.providers import BitbucketProvider  # noqa: E402

PROFILE = {
    "uuid": "{a1b2c3d4-0000-1111-2222-333344445555}",
    "display_name": "Ada Lovelace",
    "username": "ada",
    "account_id": "557058:abc",
    "links": {"avatar": {"href": "https://avatar-management.example/ada.png"}},
}

EMAILS = {
    "pagelen": 10,
    "values": [
        {"email": "ada@work.example", "is_primary": False, "is_confirmed": True},
        {"email": "ada@home.example", "is_primary": True, "is_confirmed": True},
    ],
    "page": 1,
    "size": 2,
}

TOKEN = {
    "access_token": "at-123",
    "refresh_token": "rt-456",
    "expires_in": 7200,
    "token_type": "bearer",
    "scopes": "account email",
}


class FakeBitbucket:
    """Routes requests to canned Bitbucket responses and records them."""

    def __init__(self, token=None, profile=None, emails=None):
        self.responses = {
            "/site/oauth2/access_token": token,
            "/api/2.0/user": profile,
            "/api/2.0/user/emails": emails,
        }
        defaults = {
            "/site/oauth2/access_token": httpx.Response(200, json=TOKEN),
            "/api/2.0/user": httpx.Response(200, json=PROFILE),
            "/api/2.0/user/emails": httpx.Response(200, json=EMAILS),
        }
        for path, response in defaults.items():
            if self.responses[path] is None:
                self.responses[path] = response
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(response, Exception):
            raise response
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    def requests_to(self, path):
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def driver_config():
    return {
        "clientId": 123456789,
        "clientSecret": "sjkhdjhjhJhjwhjwhjJjejhieKJ",
        "redirectUri": "http://localhost",
    }


@pytest.fixture
def fake_bitbucket():
    return FakeBitbucket()


@pytest_asyncio.fixture
async def make_provider(driver_config):
    """Build a driver whose HTTP client talks to the given fake."""
    clients = []

    def _make(fake, config=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
        clients.append(client)
        return BitbucketProvider(lambda key: config or driver_config, http_client=client)

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def bitbucket_factory():
    return FakeBitbucket

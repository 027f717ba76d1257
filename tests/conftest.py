import io

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from urllib3 import HTTPResponse

from ghproxy.app import create_app
from ghproxy.config import Config
from ghproxy.forwarder import GuardedSession


class StubAdapter(BaseAdapter):
    """Transport adapter answering from canned responses instead of the network."""

    def __init__(self):
        super().__init__()
        self.routes = {}
        self.requests = []

    def add(self, url, status=200, headers=None, body=b""):
        self.routes[url] = (status, headers or {}, body)

    def redirect(self, url, location, status=302):
        self.add(url, status=status, headers={"Location": location})

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.requests.append(request)
        if request.url not in self.routes:
            raise requests.ConnectionError(f"connection refused: {request.url}", request=request)

        status, headers, body = self.routes[request.url]
        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        response.raw = HTTPResponse(
            body=io.BytesIO(body),
            headers=headers,
            status=status,
            preload_content=False,
            decode_content=False,
        )
        response.headers = CaseInsensitiveDict(response.raw.headers)
        response.url = request.url
        response.request = request
        response.connection = self
        return response

    def close(self):
        pass

    @property
    def urls(self):
        return [r.url for r in self.requests]


@pytest.fixture
def upstream():
    return StubAdapter()


@pytest.fixture
def session_factory(upstream):
    def factory(guard):
        session = GuardedSession(guard)
        session.mount("https://", upstream)
        session.mount("http://", upstream)
        return session

    return factory


@pytest.fixture
def config(tmp_path):
    return Config(size_limit_mb=1, log_file=str(tmp_path / "ghproxy.log"))


@pytest.fixture
def app(config, session_factory):
    app = create_app(config, session_factory=session_factory)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()

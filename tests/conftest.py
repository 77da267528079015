from copy import deepcopy
from typing import Any, Optional

import pytest
from requests.cookies import RequestsCookieJar

from ogbridge.api import OurGroceriesClient
from ogbridge.session import API_URL, SIGN_IN_URL


LISTS_PAGE_HTML = """
<html><head><script type="text/javascript">
    var g_teamId = "%s";
    var g_listId = null;
</script></head><body>Your Lists</body></html>
"""


class FakeRawHeaders:
    def __init__(self, set_cookies):
        self._set_cookies = list(set_cookies)

    def getlist(self, name):
        if name.lower() == "set-cookie":
            return list(self._set_cookies)
        return []


class FakeRaw:
    def __init__(self, set_cookies):
        self.headers = FakeRawHeaders(set_cookies)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", set_cookies=(), invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.invalid_json = invalid_json
        self.content = b"" if payload is None and not invalid_json else b"{}"
        self.raw = FakeRaw(set_cookies)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeHttp:
    """Stands in for requests.Session and plays the OurGroceries side."""

    def __init__(self, team_id="team-123", auth_ok=True, page_html=None):
        self.team_id = team_id
        self.auth_ok = auth_ok
        self.page_html = page_html
        self.cookies = RequestsCookieJar()
        self.calls: list[dict[str, Any]] = []
        # Consumed in order by command POSTs: FakeResponse or Exception
        self.command_responses: list[Any] = []
        self.sign_in_error: Optional[Exception] = None
        self.sign_in_hook = None
        self._logins = 0

    def request(self, method, url, **kwargs):
        self.calls.append({
            "method": method,
            "url": url,
            "data": deepcopy(kwargs.get("data")),
            "json": deepcopy(kwargs.get("json")),
            "headers": deepcopy(kwargs.get("headers") or {}),
            "allow_redirects": kwargs.get("allow_redirects", True),
            "timeout": kwargs.get("timeout"),
        })

        if url == SIGN_IN_URL:
            if self.sign_in_error is not None:
                raise self.sign_in_error
            if self.sign_in_hook is not None:
                self.sign_in_hook()
            action = kwargs["data"]["action"]
            if action == "email-address":
                return FakeResponse(302, set_cookies=["JSESSIONID=pre; Path=/; HttpOnly"])
            if not self.auth_ok:
                return FakeResponse(200, text="<html>Wrong password</html>")
            self._logins += 1
            return FakeResponse(302, set_cookies=[
                f"ourgroceries-auth=tok{self._logins}; Path=/; "
                "Expires=Wed, 01 Jan 2031 00:00:00 GMT; HttpOnly",
            ])

        if url == API_URL and method == "GET":
            html = self.page_html if self.page_html is not None else LISTS_PAGE_HTML % self.team_id
            return FakeResponse(200, text=html, set_cookies=["AWSALB=lb1; Path=/"])

        if url == API_URL and method == "POST":
            if not self.command_responses:
                return FakeResponse(200, payload={})
            nxt = self.command_responses.pop(0)
            if isinstance(nxt, Exception):
                raise nxt
            return nxt

        return FakeResponse(404)

    def queue(self, status_code=200, payload=None, **kwargs):
        self.command_responses.append(FakeResponse(status_code, payload=payload, **kwargs))

    @property
    def sign_in_calls(self):
        """Number of password submissions (one per login attempt)."""
        return sum(
            1 for c in self.calls
            if c["url"] == SIGN_IN_URL and c["data"]["action"] == "sign-in"
        )

    @property
    def command_calls(self):
        return [c for c in self.calls if c["url"] == API_URL and c["method"] == "POST"]


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def client(fake_http):
    return OurGroceriesClient("cook@example.com", "s3cret", http=fake_http)

import base64
import json

import pytest
import responses

from vehiclecmd.account import (
    DEFAULT_DOMAIN,
    Account,
    build_user_agent,
    new_account,
    oauth_domain,
)
from vehiclecmd.inet import HTTPError

VALID_DOMAIN = "fleet-api.example.tesla.com"


def b64(text):
    return base64.b64encode(text.encode()).decode().rstrip("=")


def make_jwt(payload):
    return f"x.{b64(json.dumps(payload))}.y"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.mark.parametrize(
    "jwt, should_error",
    [
        ("", True),
        (b64(VALID_DOMAIN), True),
        ("x." + b64(VALID_DOMAIN), True),
        ("x." + b64(VALID_DOMAIN) + "y.z", True),
        ("x." + VALID_DOMAIN + ".y", True),
        ("x." + b64('{"aud": "example.com"}') + ".y", True),
        ("x." + b64(f'{{"aud": "{VALID_DOMAIN}"}}') + ".y", True),
        ("x." + b64(f'{{"aud": ["{VALID_DOMAIN}"]}}') + ".y", False),
    ],
    ids=[
        "empty JWT",
        "one-field JWT",
        "two-field JWT",
        "four-field JWT",
        "non-base64 encoded JWT",
        "untrusted domain",
        "aud field not a list",
        "valid JWT",
    ],
)
def test_new_account(jwt, should_error):
    if should_error:
        with pytest.raises(ValueError):
            new_account(jwt, "")
    else:
        assert new_account(jwt, "").host == VALID_DOMAIN


def test_domain_default():
    acct = new_account(make_jwt({"aud": ["https://auth.tesla.com/nts"]}), "")
    assert acct.host == DEFAULT_DOMAIN


def test_domain_extraction():
    payload = {
        "aud": [
            "https://auth.tesla.com/nts",
            "https://fleet-api.prd.na.vn.cloud.tesla.com",
            "https://fleet-api.prd.eu.vn.cloud.tesla.com",
        ],
        "ou_code": "EU",
        "sub": "SUBJECT",
    }
    acct = new_account(make_jwt(payload), "")
    assert acct.host == "fleet-api.prd.eu.vn.cloud.tesla.com"
    assert acct.subject == "SUBJECT"


def test_oauth_domain_prefers_last_without_region():
    audiences = [
        "https://fleet-api.prd.eu.vn.cloud.tesla.com/",
        "https://fleet-api.prd.na.vn.cloud.tesla.com",
    ]
    assert oauth_domain(audiences, "") == "fleet-api.prd.na.vn.cloud.tesla.com"


def test_oauth_domain_rejects_paths_and_untrusted():
    audiences = [
        "https://fleet-api.example.com",
        "https://fleet-api.prd.eu.tesla.com/path",
        "https://api.example.tesla.com",
    ]
    assert oauth_domain(audiences, "eu") == DEFAULT_DOMAIN


def test_oauth_domain_strips_trailing_slash():
    assert oauth_domain(["https://fleet-api.prd.eu.vn.cloud.tesla.com/"], "EU") == (
        "fleet-api.prd.eu.vn.cloud.tesla.com"
    )


def test_user_agent_with_app():
    agent = build_user_agent("myapp")
    assert agent.startswith("myapp tesla-sdk/")
    assert new_account(make_jwt({"aud": []}), "myapp").user_agent == agent


def test_get_returns_body(mocked):
    jwt = make_jwt({"aud": [f"https://{VALID_DOMAIN}"]})
    acct = new_account(jwt, "myapp")
    mocked.add(responses.GET, f"https://{VALID_DOMAIN}/api/1/vehicles", body=b"[1,2]")
    assert acct.get("api/1/vehicles") == b"[1,2]"
    headers = mocked.calls[0].request.headers
    assert headers["Authorization"] == "Bearer " + jwt
    assert headers["User-Agent"] == acct.user_agent


def test_get_non_ok_raises(mocked):
    acct = Account("ua", "Bearer token", VALID_DOMAIN, "")
    mocked.add(responses.GET, f"https://{VALID_DOMAIN}/missing", status=404)
    with pytest.raises(HTTPError) as info:
        acct.get("missing")
    assert info.value.code == 404


def test_post_sends_raw_data(mocked):
    acct = Account("ua", "Bearer token", VALID_DOMAIN, "")
    mocked.add(responses.POST, f"https://{VALID_DOMAIN}/api/1/thing", body=b"done")
    assert acct.post("api/1/thing", b'{"a":1}') == b"done"
    assert mocked.calls[0].request.body == b'{"a":1}'


def test_send_vehicle_command(mocked):
    acct = Account("ua", "Bearer token", VALID_DOMAIN, "")
    url = f"https://{VALID_DOMAIN}/api/1/vehicles/TESTVIN0000000001/command/honk"
    mocked.add(responses.POST, url, body=b"{}")
    assert acct.send_vehicle_fleet_api_command("TESTVIN0000000001", "command/honk", {"x": 1}) == b"{}"
    assert json.loads(mocked.calls[0].request.body) == {"x": 1}


def test_update_key(mocked):
    acct = Account("ua", "Bearer token", VALID_DOMAIN, "")
    mocked.add(responses.POST, f"https://{VALID_DOMAIN}/api/1/users/keys", body=b"{}")
    acct.update_key(b"\x04\xab\x01", "laptop")
    sent = json.loads(mocked.calls[0].request.body)
    assert sent == {
        "public_key": "04ab01",
        "kind": "mobile_device",
        "model": "3rd Party Application",
        "name": "laptop",
        "tag": "ua",
    }
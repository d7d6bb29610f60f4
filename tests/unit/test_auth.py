import base64
import json

import pytest

from omo.auth import (
    AuthData,
    clear_auth,
    extract_account_id,
    is_expired,
    load_auth,
    save_auth,
)
from omo.errors import AuthError


def make_token(claims: dict) -> str:
    def b64(obj) -> str:
        raw = json.dumps(obj).encode()
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

    return f"{b64({'alg': 'none'})}.{b64(claims)}.sig"


class TestExtractAccountId:
    def test_reads_claim(self):
        token = make_token({
            "https://api.openai.com/auth": {"chatgpt_account_id": "acct_123"},
        })
        assert extract_account_id(token) == "acct_123"

    @pytest.mark.parametrize("token", [
        "not-a-jwt",
        "a.b",
        "a.!!!.c",
        make_token({"sub": "user"}),
        make_token({"https://api.openai.com/auth": {}}),
    ])
    def test_rejects_bad_tokens(self, token):
        with pytest.raises(AuthError, match="accountId"):
            extract_account_id(token)


class TestAuthFile:
    def test_save_load_clear(self, tmp_path):
        path = str(tmp_path / ".omo" / "auth.json")
        auth = AuthData(access="tok", refresh="ref", expires=123, account_id="acct")

        save_auth(auth, path)
        on_disk = json.loads(open(path).read())
        assert on_disk["accountId"] == "acct"
        assert load_auth(path) == auth

        clear_auth(path)
        assert load_auth(path) is None
        clear_auth(path)

    def test_load_reads_camel_case_file(self, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text(json.dumps({
            "access": "a", "refresh": "r", "expires": 1, "accountId": "x",
        }))
        assert load_auth(str(path)).account_id == "x"

    def test_unreadable_file_ignored(self, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text("{not json")
        assert load_auth(str(path)) is None


def test_is_expired_uses_five_minute_buffer():
    auth = AuthData(access="a", expires=1_000_000, account_id="x")
    assert not is_expired(auth, now_ms=1_000_000 - 5 * 60 * 1000)
    assert is_expired(auth, now_ms=1_000_000 - 5 * 60 * 1000 + 1)

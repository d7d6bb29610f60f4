import io

from omo.auth import AuthData, save_auth
from omo.cli import TerminalView, build_settings, parse_args, resolve_credentials
from omo.config import Settings
from omo.events import ResponseEndEvent, TokenEvent, ToolEndEvent, ToolStartEvent


class TestBuildSettings:
    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("OMO_MODEL", "from-env")
        monkeypatch.setenv("OMO_MAX_ROUNDS", "3")
        args = parse_args(["--model", "from-flag", "--read-timeout", "2.5"])

        settings = build_settings(args)

        assert settings.model == "from-flag"
        assert settings.max_rounds == 3
        assert settings.read_timeout == 2.5

    def test_unset_flags_keep_defaults(self, monkeypatch):
        monkeypatch.delenv("OMO_MODEL", raising=False)
        settings = build_settings(parse_args([]))
        assert settings.model == Settings().model


class TestResolveCredentials:
    def test_env_token_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OMO_ACCESS_TOKEN", "tok")
        monkeypatch.setenv("OMO_ACCOUNT_ID", "acct")
        auth = resolve_credentials(Settings(auth_path=str(tmp_path / "auth.json")))
        assert (auth.access, auth.account_id) == ("tok", "acct")

    def test_saved_auth_used(self, monkeypatch, tmp_path):
        monkeypatch.delenv("OMO_ACCESS_TOKEN", raising=False)
        path = str(tmp_path / "auth.json")
        save_auth(AuthData(access="saved", account_id="a1"), path)
        auth = resolve_credentials(Settings(auth_path=path))
        assert auth.access == "saved"

    def test_missing_auth_is_none(self, monkeypatch, tmp_path):
        monkeypatch.delenv("OMO_ACCESS_TOKEN", raising=False)
        settings = Settings(auth_path=str(tmp_path / "missing.json"))
        assert resolve_credentials(settings) is None


class TestTerminalView:
    def test_label_printed_once_per_response(self):
        out = io.StringIO()
        view = TerminalView(out)
        view.on_token(TokenEvent(text="Hel"))
        view.on_token(TokenEvent(text="lo"))
        view.on_response_end(ResponseEndEvent(full_text="Hello"))
        view.on_token(TokenEvent(text="Again"))

        assert out.getvalue() == "Omo: Hello\n\nOmo: Again"

    def test_tool_result_preview_truncated(self):
        out = io.StringIO()
        view = TerminalView(out)
        view.on_tool_start(ToolStartEvent(name="read", args={"path": "a"}))
        view.on_tool_end(ToolEndEvent(name="read", result="x" * 150))

        assert out.getvalue() == f"\n[Tool: read]\n[Result: {'x' * 100}...]\n"

    def test_tool_error_shown(self):
        out = io.StringIO()
        TerminalView(out).on_tool_end(ToolEndEvent(name="bash", error="boom"))
        assert out.getvalue() == "[Error: boom]\n"

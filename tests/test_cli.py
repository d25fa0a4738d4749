"""
Tests for the fg CLI.

All tests mock httpx to avoid real API calls.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from cli import fg


def _response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    resp.text = json.dumps(body)
    return resp


@pytest.fixture
def flow_file(tmp_path, valid_flow):
    path = tmp_path / "flow.json"
    path.write_text(json.dumps(valid_flow))
    return path


class TestHealth:
    def test_health(self, capsys):
        with patch("httpx.get", return_value=_response(body={"ok": True, "catalog_version": "1.0.0"})) as mock_get:
            fg.main(["--url", "http://api.test", "health"])
        assert mock_get.call_args[0][0] == "http://api.test/health"
        out = capsys.readouterr().out
        assert "OK: True" in out
        assert "1.0.0" in out

    def test_api_key_header(self):
        with patch("httpx.get", return_value=_response(body={"ok": True})) as mock_get:
            fg.main(["--key", "secret", "health"])
        assert mock_get.call_args[1]["headers"] == {"X-API-Key": "secret"}


class TestValidate:
    def test_valid_flow(self, flow_file, valid_flow, capsys):
        body = {"isValid": True, "errors": [], "warnings": []}
        with patch("httpx.post", return_value=_response(body=body)) as mock_post:
            fg.main(["--key", "", "validate", str(flow_file)])
        assert mock_post.call_args[0][0].endswith("/validate")
        assert mock_post.call_args[1]["json"] == {"flow": valid_flow}
        assert "Valid: True" in capsys.readouterr().out

    def test_invalid_flow_exits_2(self, flow_file, capsys):
        body = {"isValid": False, "errors": ["Check: Missing input connection"], "warnings": []}
        with patch("httpx.post", return_value=_response(body=body)):
            with pytest.raises(SystemExit) as exc:
                fg.main(["validate", str(flow_file)])
        assert exc.value.code == 2
        assert "Check: Missing input connection" in capsys.readouterr().out

    def test_fix_writes_output(self, flow_file, tmp_path):
        fixed = {"nodes": [{"id": "start", "type": "start"}], "edges": []}
        body = {"isValid": True, "errors": [], "warnings": ["w"], "fixedFlow": fixed}
        out_path = tmp_path / "fixed.json"
        with patch("httpx.post", return_value=_response(body=body)) as mock_post:
            fg.main(["validate", str(flow_file), "--fix", "-o", str(out_path)])
        assert mock_post.call_args[0][0].endswith("/validate/fix")
        assert json.loads(out_path.read_text()) == fixed

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            fg.main(["validate", str(tmp_path / "nope.json")])
        assert exc.value.code == 1
        assert "Cannot read" in capsys.readouterr().out


class TestSave:
    def test_save_sends_flags(self, flow_file):
        body = {"id": "abc", "is_valid": True, "draft": False, "errors": [], "warnings": []}
        with patch("httpx.post", return_value=_response(body=body)) as mock_post:
            fg.main(["save", str(flow_file), "--name", "Alert", "--draft", "--accept-fixes"])
        sent = mock_post.call_args[1]["json"]
        assert sent["name"] == "Alert"
        assert sent["draft"] is True
        assert sent["accept_fixes"] is True

    def test_rejected_save_prints_errors(self, flow_file, capsys):
        detail = {"message": "Flow has structural errors", "errors": ["Timer: Missing input connection"],
                  "warnings": []}
        with patch("httpx.post", return_value=_response(422, {"detail": detail})):
            with pytest.raises(SystemExit) as exc:
                fg.main(["save", str(flow_file), "--name", "Alert"])
        assert exc.value.code == 1
        out = capsys.readouterr().out
        assert "Error 422: Flow has structural errors" in out
        assert "Timer: Missing input connection" in out


class TestList:
    def test_list_table(self, capsys):
        body = {"flows": [{"id": "0123456789", "name": "Alert", "is_valid": True, "draft": False,
                           "updated_at": "2024-01-01T00:00:00+00:00"}], "count": 1}
        with patch("httpx.get", return_value=_response(body=body)) as mock_get:
            fg.main(["list", "--limit", "5"])
        assert mock_get.call_args[1]["params"] == {"limit": 5}
        out = capsys.readouterr().out
        assert "01234567" in out
        assert "Alert" in out


class TestDelete:
    def test_delete(self, capsys):
        with patch("httpx.delete", return_value=_response(body={"deleted": True, "id": "abc"})) as mock_delete:
            fg.main(["--url", "http://api.test", "delete", "abc"])
        assert mock_delete.call_args[0][0] == "http://api.test/flows/abc"
        assert "Deleted: True" in capsys.readouterr().out

    def test_delete_unknown(self, capsys):
        with patch("httpx.delete", return_value=_response(404, {"detail": "Flow abc not found"})):
            with pytest.raises(SystemExit) as exc:
                fg.main(["delete", "abc"])
        assert exc.value.code == 1
        assert "Error 404: Flow abc not found" in capsys.readouterr().out

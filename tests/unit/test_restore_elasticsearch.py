"""Tests for snaprestore.providers.restore.elasticsearch."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from snaprestore.core.settings import ElasticsearchSettings
from snaprestore.providers.restore import elasticsearch as es_module
from snaprestore.providers.restore.base import (
    RestoreConfigError,
    RestoreConnectionError,
    RestoreError,
)
from snaprestore.providers.restore.elasticsearch import ElasticsearchRestoreProvider


def _provider(**overrides) -> ElasticsearchRestoreProvider:
    values = {"host": "http://es:9200/", "index": "logs", "api_key": None}
    values.update(overrides)
    return ElasticsearchRestoreProvider(ElasticsearchSettings(**values))


def _bulk_file(path: Path, docs: int) -> Path:
    lines = []
    for i in range(docs):
        lines.append(json.dumps({"index": {"_id": str(i)}}))
        lines.append(json.dumps({"message": f"doc {i}"}))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _bulk_response(items: int, errors: bool = False, error=None) -> MagicMock:
    resp = MagicMock()
    resp.raise_for_status = MagicMock()
    result = {"status": 201}
    if error:
        result = {"status": 400, "error": error}
    resp.json.return_value = {"errors": errors, "items": [{"index": result}] * items}
    return resp


class TestConfiguration:
    def test_required(self):
        assert _provider().is_configured()
        assert _provider(index=None).unset_fields() == ["index"]

    def test_base_url_strips_slash(self):
        assert _provider().base_url == "http://es:9200"

    def test_invalid_scheme(self):
        with pytest.raises(RestoreError, match="invalid host URL"):
            _provider(host="es:9200").test_connection()


class TestHealth:
    @patch("httpx.get")
    def test_health(self, mock_get):
        resp = MagicMock()
        resp.json.return_value = {"cluster_name": "prod", "status": "green"}
        mock_get.return_value = resp

        message = _provider(api_key="k3y").test_connection()
        assert "prod" in message
        assert "green" in message
        url = mock_get.call_args.args[0]
        assert url == "http://es:9200/_cluster/health"
        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "ApiKey k3y"

    @patch("httpx.get")
    def test_unreachable(self, mock_get):
        import httpx
        mock_get.side_effect = httpx.ConnectError("refused")
        with pytest.raises(RestoreConnectionError, match="not reachable"):
            _provider().test_connection()

    @patch("httpx.get")
    def test_non_json_health_response(self, mock_get):
        resp = MagicMock()
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        mock_get.return_value = resp
        with pytest.raises(RestoreConnectionError, match="unexpected health response"):
            _provider().test_connection()

    @patch("httpx.get")
    def test_read_error(self, mock_get):
        import httpx
        mock_get.side_effect = httpx.ReadError("connection reset")
        with pytest.raises(RestoreConnectionError, match="not reachable"):
            _provider().test_connection()

    @patch("httpx.get")
    def test_missing_index_never_calls(self, mock_get):
        with pytest.raises(RestoreConfigError, match="index"):
            _provider(index="").test_connection()
        mock_get.assert_not_called()


class TestRestore:
    @patch("httpx.post")
    def test_single_batch(self, mock_post, tmp_path: Path):
        mock_post.return_value = _bulk_response(3)
        path = _bulk_file(tmp_path / "snap.ndjson", 3)

        progress = []
        message = _provider().restore_snapshot(path, progress.append)

        assert message == "Successfully restored to index: logs"
        mock_post.assert_called_once()
        assert mock_post.call_args.args[0] == "http://es:9200/logs/_bulk"
        assert mock_post.call_args.kwargs["headers"]["Content-Type"] == "application/x-ndjson"
        body = mock_post.call_args.kwargs["content"]
        assert body.count(b"\n") == 6
        assert progress[0] == 0.0
        assert progress[-1] == 1.0

    @patch("httpx.post")
    def test_batches_keep_pairs(self, mock_post, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(es_module, "BATCH_LINES", 4)
        mock_post.return_value = _bulk_response(2)
        path = _bulk_file(tmp_path / "snap.ndjson", 5)

        progress = []
        _provider().restore_snapshot(path, progress.append)

        assert mock_post.call_count == 3
        for call in mock_post.call_args_list:
            assert call.kwargs["content"].count(b"\n") % 2 == 0
        assert progress == sorted(progress)

    @patch("httpx.post")
    def test_bulk_errors_fail(self, mock_post, tmp_path: Path):
        mock_post.return_value = _bulk_response(
            1, errors=True, error={"type": "mapper_parsing_exception", "reason": "bad field"},
        )
        path = _bulk_file(tmp_path / "snap.ndjson", 1)
        with pytest.raises(RestoreError, match="mapper_parsing_exception: bad field"):
            _provider().restore_snapshot(path)

    @patch("httpx.post")
    def test_http_error(self, mock_post, tmp_path: Path):
        import httpx
        request = httpx.Request("POST", "http://es:9200/logs/_bulk")
        response = httpx.Response(413, request=request, text="too large")
        mock_post.return_value = response
        path = _bulk_file(tmp_path / "snap.ndjson", 1)
        with pytest.raises(RestoreError, match="413"):
            _provider().restore_snapshot(path)

    @patch("httpx.post")
    def test_non_json_bulk_response(self, mock_post, tmp_path: Path):
        resp = MagicMock()
        resp.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = resp
        path = _bulk_file(tmp_path / "snap.ndjson", 1)
        with pytest.raises(RestoreError, match="not JSON"):
            _provider().restore_snapshot(path)

    @patch("httpx.post")
    def test_dropped_connection(self, mock_post, tmp_path: Path):
        import httpx
        mock_post.side_effect = httpx.RemoteProtocolError("server disconnected")
        path = _bulk_file(tmp_path / "snap.ndjson", 1)
        with pytest.raises(RestoreConnectionError, match="server disconnected"):
            _provider().restore_snapshot(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(RestoreError, match="cannot read"):
            _provider().restore_snapshot(tmp_path / "nope.ndjson")

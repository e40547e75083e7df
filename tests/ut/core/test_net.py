"""URL scheme 校验 + HTTP 传输测试"""

from __future__ import annotations

import http.client
import io
import urllib.error
from pathlib import Path

import pytest

from vcatalog.core.exceptions import ValidationError
from vcatalog.utils import net
from vcatalog.utils.net import TransportError, UrllibTransport, validate_url_scheme


class TestValidateUrlScheme:
    def test_http_ok(self) -> None:
        validate_url_scheme("http://example.com/maven2")

    def test_https_ok(self) -> None:
        validate_url_scheme("https://repo1.maven.org/maven2")

    def test_file_rejected(self) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            validate_url_scheme("file:///etc/passwd")

    def test_ftp_rejected(self) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            validate_url_scheme("ftp://evil.com/payload")

    def test_empty_scheme_rejected(self) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            validate_url_scheme("/local/path")

    def test_context_in_error(self) -> None:
        with pytest.raises(ValidationError, match="artifact g:n:1"):
            validate_url_scheme("file:///x", context="artifact g:n:1")


class TestUrllibTransport:
    def test_rejects_non_http_before_network(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            UrllibTransport().download("file:///etc/hosts", tmp_path / "x", timeout=1)

    def test_http_error_maps_to_transport_error(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fake_urlopen(req, timeout):  # type: ignore[no-untyped-def]
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, None)  # type: ignore[arg-type]

        monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
        with pytest.raises(TransportError) as exc_info:
            UrllibTransport().fetch("https://repo.test/a.jar", timeout=1)
        assert exc_info.value.status == 404
        assert isinstance(exc_info.value, OSError)

    def test_timeout_maps_to_transport_error(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fake_urlopen(req, timeout):  # type: ignore[no-untyped-def]
            raise TimeoutError("timed out")

        monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
        with pytest.raises(TransportError, match="timed out") as exc_info:
            UrllibTransport().fetch("https://repo.test/a.jar", timeout=0.1)
        assert exc_info.value.status is None

    def test_truncated_download_maps_to_transport_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path,
    ) -> None:
        """响应体中途断开 (IncompleteRead) 同样是一次传输失败"""

        class Truncated(io.BytesIO):
            def read(self, size: int | None = -1) -> bytes:
                raise http.client.IncompleteRead(b"partial", 100)

        monkeypatch.setattr(net.urllib.request, "urlopen", lambda req, timeout: Truncated())
        with pytest.raises(TransportError, match="IncompleteRead"):
            UrllibTransport().download("https://repo.test/a.jar", tmp_path / "a.jar", timeout=1)
        with pytest.raises(TransportError, match="IncompleteRead"):
            UrllibTransport().fetch("https://repo.test/a.json", timeout=1)

    def test_remote_disconnect_maps_to_transport_error(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fake_urlopen(req, timeout):  # type: ignore[no-untyped-def]
            raise http.client.BadStatusLine("")

        monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
        with pytest.raises(TransportError):
            UrllibTransport().fetch("https://repo.test/a.jar", timeout=1)

"""
Tests for document and image retrieval.
"""

from unittest.mock import MagicMock, PropertyMock, patch

import pytest
import requests

from linkcard.config import FetchOptions
from linkcard.errors import FetchError
from linkcard.fetcher import (
    decode_body,
    fetch_content,
    is_document_type,
    normalize_headers,
    open_image_stream,
)


def _patched_session(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    session_cls = MagicMock()
    session_cls.return_value.__enter__.return_value = session
    return session_cls, session


def _forbid_whole_body_access(resp):
    """Fail if the whole body is loaded or its charset guessed."""
    for name in ("content", "text", "apparent_encoding"):
        setattr(
            type(resp),
            name,
            PropertyMock(side_effect=AssertionError(f"response.{name} was read")),
        )


class TestNormalizeHeaders:
    def test_lowercases_names_and_stringifies_values(self):
        headers = normalize_headers(
            {"Content-Type": "text/html", "Content-Length": 42, "Set-Cookie": ["a=1", "b=2"]}
        )

        assert headers == {
            "content-type": "text/html",
            "content-length": "42",
            "set-cookie": "a=1,b=2",
        }

    def test_accepts_case_insensitive_dict(self):
        raw = requests.structures.CaseInsensitiveDict({"X-Thing": "yes"})
        assert normalize_headers(raw) == {"x-thing": "yes"}


class TestFetchContent:
    """Primary document fetch."""

    def test_returns_body_and_headers(self, make_response):
        resp = make_response(b"<html></html>", headers={"Content-Type": "text/html"})
        session_cls, session = _patched_session(resp)

        with patch("linkcard.fetcher.requests.Session", session_cls):
            fetched = fetch_content("https://example.com/", FetchOptions())

        assert fetched.url == "https://example.com/"
        assert fetched.text == "<html></html>"
        assert fetched.content == b"<html></html>"
        assert fetched.content_type == "text/html"
        session.get.assert_called_once_with(
            "https://example.com/", stream=True, timeout=3.0
        )

    def test_forwards_timeout_proxy_and_headers(self, make_response):
        session_cls, session = _patched_session(make_response(b"ok"))
        opts = FetchOptions(
            timeout=1500, proxy_url="http://proxy:3128", headers={"User-Agent": "bot"}
        )

        with patch("linkcard.fetcher.requests.Session", session_cls):
            fetch_content("https://example.com/", opts)

        session.get.assert_called_once_with(
            "https://example.com/",
            stream=True,
            timeout=1.5,
            headers={"User-Agent": "bot"},
            proxies={"http": "http://proxy:3128", "https": "http://proxy:3128"},
        )

    @pytest.mark.parametrize(
        "error",
        [
            requests.ConnectionError("Name or service not known"),
            requests.Timeout("read timed out"),
        ],
    )
    def test_transport_errors_become_fetch_errors(self, error):
        session_cls, _ = _patched_session(error=error)

        with patch("linkcard.fetcher.requests.Session", session_cls):
            with pytest.raises(FetchError) as excinfo:
                fetch_content("https://example.com/", FetchOptions())

        assert excinfo.value.url == "https://example.com/"
        assert excinfo.value.__cause__ is error

    def test_http_error_status_raises(self, make_response):
        session_cls, _ = _patched_session(make_response(b"gone", status_code=404))

        with patch("linkcard.fetcher.requests.Session", session_cls):
            with pytest.raises(FetchError, match="404"):
                fetch_content("https://example.com/missing", FetchOptions())

    def test_media_body_is_not_read(self, make_response):
        resp = make_response(headers={"Content-Type": "video/mp4"})
        _forbid_whole_body_access(resp)
        session_cls, _ = _patched_session(resp)

        with patch("linkcard.fetcher.requests.Session", session_cls):
            fetched = fetch_content("https://example.com/clip.mp4", FetchOptions())

        resp.iter_content.assert_not_called()
        resp.close.assert_called_once()
        assert fetched.content == b""
        assert fetched.text == ""
        assert fetched.content_type == "video/mp4"

    def test_large_document_is_cut_at_cap(self, make_response):
        consumed = []

        def chunks():
            for index in range(1000):
                consumed.append(index)
                yield b"<p>x</p>!!"

        resp = make_response(headers={"Content-Type": "text/html"}, chunks=chunks())
        _forbid_whole_body_access(resp)
        session_cls, _ = _patched_session(resp)

        with patch("linkcard.fetcher.MAX_DOCUMENT_BYTES", 25):
            with patch("linkcard.fetcher.requests.Session", session_cls):
                fetched = fetch_content("https://example.com/huge", FetchOptions())

        assert len(fetched.content) == 25
        assert fetched.text == "<p>x</p>!!<p>x</p>!!<p>x<"
        assert len(consumed) == 3
        resp.close.assert_called_once()

    def test_declared_charset_is_used(self, make_response):
        body = "<title>Café</title>".encode("latin-1")
        resp = make_response(
            headers={"Content-Type": "text/html; charset=ISO-8859-1"},
            chunks=[body],
            encoding="ISO-8859-1",
        )
        _forbid_whole_body_access(resp)
        session_cls, _ = _patched_session(resp)

        with patch("linkcard.fetcher.requests.Session", session_cls):
            fetched = fetch_content("https://example.com/", FetchOptions())

        assert fetched.text == "<title>Café</title>"

    def test_interrupted_body_is_a_fetch_error(self, make_response):
        resp = make_response(headers={"Content-Type": "text/html"})
        resp.iter_content.side_effect = requests.ConnectionError("reset by peer")
        session_cls, _ = _patched_session(resp)

        with patch("linkcard.fetcher.requests.Session", session_cls):
            with pytest.raises(FetchError):
                fetch_content("https://example.com/", FetchOptions())

        resp.close.assert_called_once()


class TestDocumentTypes:
    @pytest.mark.parametrize(
        "content_type",
        ["text/html; charset=utf-8", "application/xhtml+xml", "text/plain", ""],
    )
    def test_documents(self, content_type):
        assert is_document_type(content_type)

    @pytest.mark.parametrize(
        "content_type",
        ["video/mp4", "image/png", "audio/ogg", "application/octet-stream"],
    )
    def test_non_documents(self, content_type):
        assert not is_document_type(content_type)


class TestDecodeBody:
    def test_defaults_to_utf8_without_declared_charset(self):
        # requests reports ISO-8859-1 for any text/* response lacking a charset
        body = "naïve".encode("utf-8")
        assert decode_body(body, "text/html", "ISO-8859-1") == "naïve"

    def test_undecodable_bytes_are_replaced(self):
        assert decode_body(b"ok\xff", "text/html", None) == "ok\ufffd"

    def test_unknown_charset_falls_back_to_utf8(self):
        assert decode_body(b"ok", "text/html; charset=x-bogus", "x-bogus") == "ok"


class TestOpenImageStream:
    def test_streams_with_fetch_options(self, make_response):
        resp = make_response(b"\x89PNG")
        with patch("linkcard.fetcher.requests.get", return_value=resp) as mock_get:
            result = open_image_stream(
                "https://cdn.example.com/a.png", FetchOptions(timeout=2000)
            )

        assert result is resp
        mock_get.assert_called_once_with(
            "https://cdn.example.com/a.png", stream=True, timeout=2.0
        )

    def test_error_status_closes_response(self, make_response):
        resp = make_response(status_code=500)
        with patch("linkcard.fetcher.requests.get", return_value=resp):
            with pytest.raises(FetchError):
                open_image_stream("https://cdn.example.com/a.png", FetchOptions())

        resp.close.assert_called_once()

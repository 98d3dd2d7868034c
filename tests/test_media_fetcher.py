"""Tests for streaming media downloads."""

import itertools

import httpx
import pytest

from reelestate.exceptions import DownloadError
from reelestate.services import media_fetcher
from reelestate.services.media_fetcher import MediaFetcher

URL = "https://media.example.com/walk.mp4?sig=abc"


def _fetcher(settings, handler, sleeps=None):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    sleep = sleeps.append if sleeps is not None else (lambda s: None)
    return MediaFetcher(settings, client=client, sleep=sleep)


class TestFetch:
    def test_writes_body(self, settings, tmp_path):
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"video-bytes"))
        path = fetcher.fetch(URL, tmp_path / "walk.mp4")
        assert path.read_bytes() == b"video-bytes"

    def test_creates_parent_directory(self, settings, tmp_path):
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"x"))
        path = fetcher.fetch(URL, tmp_path / "nested" / "walk.mp4")
        assert path.exists()

    def test_not_found_fails_without_retry(self, settings, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(DownloadError) as exc_info:
            _fetcher(settings, handler).fetch(URL, tmp_path / "walk.mp4")
        assert "404" in exc_info.value.message
        assert len(calls) == 1
        assert not (tmp_path / "walk.mp4").exists()

    def test_declared_size_over_limit(self, settings, tmp_path):
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"x" * 100))
        with pytest.raises(DownloadError) as exc_info:
            fetcher.fetch(URL, tmp_path / "walk.mp4", max_bytes=50)
        assert "too large" in exc_info.value.message

    def test_streamed_size_over_limit(self, settings, tmp_path):
        """Bodies without Content-Length are cut off mid-stream."""

        def handler(request):
            return httpx.Response(200, content=iter([b"a" * 30, b"b" * 30, b"c" * 30]))

        with pytest.raises(DownloadError):
            _fetcher(settings, handler).fetch(URL, tmp_path / "walk.mp4", max_bytes=50)
        assert not (tmp_path / "walk.mp4").exists()

    def test_deadline_exceeded(self, settings, tmp_path, monkeypatch):
        clock = itertools.chain([0.0], itertools.repeat(1000.0))
        monkeypatch.setattr(media_fetcher.time, "monotonic", lambda: next(clock))
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"x" * 10))
        with pytest.raises(DownloadError) as exc_info:
            fetcher.fetch(URL, tmp_path / "walk.mp4", timeout=30)
        assert "timed out" in exc_info.value.message

    def test_trickling_source_cut_off_at_deadline(self, settings, tmp_path, monkeypatch):
        """A body arriving one byte at a time stops once the deadline passes."""
        clock = itertools.count(start=0.0, step=10.0)
        monkeypatch.setattr(media_fetcher.time, "monotonic", lambda: next(clock))
        sent = []

        def trickle():
            for _ in range(2000):
                sent.append(1)
                yield b"x"

        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=trickle()))
        with pytest.raises(DownloadError) as exc_info:
            fetcher.fetch(URL, tmp_path / "walk.mp4", timeout=30)
        assert "timed out" in exc_info.value.message
        assert len(sent) <= 5
        assert not (tmp_path / "walk.mp4").exists()

    def test_many_small_chunks_cut_off_at_limit(self, settings, tmp_path):
        sent = []

        def small_chunks():
            for _ in range(1000):
                sent.append(1)
                yield b"abcdefghij"

        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=small_chunks()))
        with pytest.raises(DownloadError) as exc_info:
            fetcher.fetch(URL, tmp_path / "walk.mp4", max_bytes=55)
        assert "too large" in exc_info.value.message
        assert len(sent) <= 7


class TestRetry:
    def test_server_error_retried_then_succeeds(self, settings, tmp_path):
        responses = iter([httpx.Response(503), httpx.Response(200, content=b"ok")])
        sleeps = []
        fetcher = _fetcher(settings, lambda request: next(responses), sleeps)

        path = fetcher.fetch(URL, tmp_path / "walk.mp4")
        assert path.read_bytes() == b"ok"
        assert len(sleeps) == 1

    def test_transport_error_retried(self, settings, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, content=b"ok")

        path = _fetcher(settings, handler).fetch(URL, tmp_path / "walk.mp4")
        assert path.read_bytes() == b"ok"
        assert len(calls) == 3

    def test_retries_exhausted(self, settings, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        with pytest.raises(DownloadError) as exc_info:
            _fetcher(settings, handler).fetch(URL, tmp_path / "walk.mp4")
        assert "after 3 attempts" in exc_info.value.message
        assert len(calls) == settings.download_max_attempts

    def test_exponential_backoff(self, settings, tmp_path):
        settings = settings.model_copy(update={"download_backoff_seconds": 1.0})
        sleeps = []
        fetcher = _fetcher(settings, lambda request: httpx.Response(500), sleeps)

        with pytest.raises(DownloadError):
            fetcher.fetch(URL, tmp_path / "walk.mp4")
        assert sleeps == [1.0, 2.0]

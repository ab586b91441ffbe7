import httpx
import pytest
from moviepy import ColorClip
from PySide6.QtCore import QEventLoop, QTimer
from PySide6.QtWidgets import QApplication

from rankreel.config import Settings
from rankreel.core.errors import AcquisitionFailure, ValidationError
from rankreel.core.ranking import Platform
from rankreel.media.acquisition import (
    FileSource,
    MediaAcquisitionService,
    UrlSource,
    validate_source,
)
from rankreel.media.clip_adapter import ClipAdapter, probe_duration
from rankreel.services.tiktok import TikTokClient, extract_video_id
from rankreel.services.workers import QtMediaAcquirer

API = "https://picker.test/tiktok/mediav2"
VIDEO_URL = "https://www.tiktok.com/@someone/video/7234567890123456789"

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])
    return _app


def _tiktok(tmp_path, handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return TikTokClient(API, tmp_path / "downloads", client=client)


def _picker(requests):
    def handler(request):
        requests.append(request)
        if request.url.host == "picker.test":
            return httpx.Response(200, json={"video_no_watermark": {"url": "https://cdn.test/v.mp4"}})
        return httpx.Response(200, content=b"video-bytes")

    return handler


def test_extract_video_id():
    assert extract_video_id(VIDEO_URL) == "7234567890123456789"
    assert extract_video_id("https://www.tiktok.com/@someone") is None


def test_download_writes_file(tmp_path):
    requests = []
    path = _tiktok(tmp_path, _picker(requests)).download("7234567890123456789")
    assert path.name == "tiktok-7234567890123456789.mp4"
    assert path.read_bytes() == b"video-bytes"
    assert requests[0].url.params["id"] == "7234567890123456789"
    assert requests[0].headers["Origin"] == "http://localhost:3000"


def test_api_error_is_acquisition_failure(tmp_path):
    client = _tiktok(tmp_path, lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(AcquisitionFailure, match="500"):
        client.video_url("1")


def test_missing_video_url(tmp_path):
    client = _tiktok(tmp_path, lambda request: httpx.Response(200, json={"video_no_watermark": {}}))
    with pytest.raises(AcquisitionFailure, match="No video URL"):
        client.video_url("1")


def test_failed_download_leaves_no_file(tmp_path):
    def handler(request):
        if request.url.host == "picker.test":
            return httpx.Response(200, json={"video_no_watermark": {"url": "https://cdn.test/v.mp4"}})
        return httpx.Response(404)

    with pytest.raises(AcquisitionFailure):
        _tiktok(tmp_path, handler).download("42")
    assert not (tmp_path / "downloads" / "tiktok-42.mp4").exists()


def test_fetch_by_url_probes_download(tmp_path):
    service = MediaAcquisitionService(
        Settings(download_dir=tmp_path), tiktok=_tiktok(tmp_path, _picker([])), probe=lambda p: 7.5
    )
    ref = service.fetch_by_url(Platform.TIKTOK, VIDEO_URL)
    assert ref.duration == 7.5
    assert ref.ref.endswith("tiktok-7234567890123456789.mp4")
    with pytest.raises(AcquisitionFailure):
        service.fetch_by_url(Platform.YOUTUBE, "https://youtube.com/watch?v=x")


def test_validate_source(tmp_path):
    validate_source(UrlSource(Platform.TIKTOK, VIDEO_URL))
    with pytest.raises(ValidationError):
        validate_source(UrlSource(Platform.TIKTOK, "   "))
    with pytest.raises(ValidationError):
        validate_source(UrlSource(Platform.INSTAGRAM, "https://instagram.com/p/x"))
    with pytest.raises(ValidationError):
        validate_source(FileSource(tmp_path / "missing.mov"))


def test_probe_real_video(tmp_path):
    path = tmp_path / "red.mp4"
    ColorClip(size=(32, 32), color=(255, 0, 0), duration=0.5).write_videofile(str(path), fps=24)
    assert probe_duration(path) == pytest.approx(0.5, abs=0.05)
    with ClipAdapter.from_path(path) as adapter:
        assert adapter.duration == pytest.approx(0.5, abs=0.05)
    ref = MediaAcquisitionService().ingest_local_file(path)
    assert ref.ref == str(path.resolve())


def test_unreadable_video(tmp_path):
    path = tmp_path / "broken.mp4"
    path.write_bytes(b"garbage")
    with pytest.raises(AcquisitionFailure):
        probe_duration(path)
    with pytest.raises(AcquisitionFailure):
        MediaAcquisitionService().ingest_local_file(tmp_path / "gone.mp4")


def test_qt_acquirer_reports_back(tmp_path):
    _ensure_app()
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"x")
    acquirer = QtMediaAcquirer(MediaAcquisitionService(probe=lambda p: 2.0))
    loop = QEventLoop()
    results = []

    def done(ref):
        results.append(ref)
        loop.quit()

    def failed(reason):
        results.append(reason)
        loop.quit()

    acquirer.acquire(FileSource(path), done, failed)
    QTimer.singleShot(5000, loop.quit)
    loop.exec()
    acquirer.shutdown()
    assert results and results[0].duration == 2.0
    assert not acquirer.busy()

import subprocess
import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings, get_settings
from clipjobs.errors import EngineError, EngineUnavailable, ValidationError
from clipjobs.main import app, get_storage, get_transport
from clipjobs.media import filters
from clipjobs.media.engine import FFmpegEngine, get_engine
from clipjobs.models.api import CompressRequest, ConvertRequest, ExportRequest, MergeRequest, TrimRequest
from clipjobs.services.edit_service import EditService


class FakeFFmpeg:
    """Stands in for the binary: answers -version and writes a marker output."""

    def __init__(self, returncode: int = 0):
        self.returncode = returncode
        self.commands = []

    def __call__(self, command, capture_output=True, timeout=None, check=False):
        self.commands.append(list(command))
        if command[-1] == "-version":
            return subprocess.CompletedProcess(command, 0, stdout=b"ffmpeg version 6.1\nbuilt with gcc", stderr=b"")
        if self.returncode:
            return subprocess.CompletedProcess(command, self.returncode, stdout=b"", stderr=b"Invalid data found")
        with open(command[-1], "wb") as handle:
            handle.write(b"rendered")
        return subprocess.CompletedProcess(command, 0, stdout=b"", stderr=b"")


def _engine(runner=None, which=None) -> FFmpegEngine:
    return FFmpegEngine(
        runner=runner or FakeFFmpeg(),
        which=which or (lambda name: f"/usr/bin/{name}"),
    )


def test_preset_filters():
    assert filters.preset_filter("brightness", 50) == "eq=brightness=0.75"
    assert filters.preset_filter("contrast", 100) == "eq=contrast=2"
    assert filters.preset_filter("blur", 0) == "boxblur=0:0"
    assert filters.preset_filter("blackwhite") == "hue=s=0"
    assert filters.preset_filter("saturation", 250) == "eq=saturation=2"
    with pytest.raises(ValidationError):
        filters.preset_filter("glow", 50)


def test_color_correction():
    assert filters.color_correction_filter({}) == "null"
    assert filters.color_correction_filter({"brightness": -100}) == "eq=brightness=0"
    assert filters.color_correction_filter({"contrast": 0, "temperature": 100}) == (
        "eq=contrast=1,colorbalance=rs=0.3:gs=-0.1:bs=-0.3"
    )


def test_speed_is_clamped_and_chained():
    assert filters.clamp_speed(8) == 4.0
    assert filters.clamp_speed(0.1) == 0.25
    args = filters.speed_args(8)
    assert args[1] == "[0:v]setpts=PTS/4[v];[0:a]atempo=2.0,atempo=2[a]"
    assert "atempo=0.5,atempo=0.5" in filters.speed_args(0.1)[1]
    assert "atempo=1.5[a]" in filters.speed_args(1.5)[1]


def test_geometry_and_timing_args():
    assert filters.rotate_args(180) == ["-vf", "transpose=1,transpose=1", "-c:a", "copy"]
    with pytest.raises(ValidationError):
        filters.rotate_args(45)
    assert filters.crop_args(640, 360, 10, 20) == ["-vf", "crop=640:360:10:20", "-c:a", "copy"]
    assert filters.trim_args(1.5, 4) == ["-ss", "1.5", "-t", "2.5", "-c", "copy"]
    with pytest.raises(ValidationError):
        filters.trim_args(4, 4)
    assert filters.concat_args(2, with_audio=False) == [
        "-filter_complex",
        "[0:v][1:v]concat=n=2:v=1:a=0[v]",
        "-map",
        "[v]",
    ]
    with pytest.raises(ValidationError):
        filters.concat_args(1)


def test_compress_args_follow_quality():
    assert filters.compress_args("low") == [
        "-c:v", "libx264", "-crf", "32", "-preset", "fast", "-c:a", "aac", "-b:a", "128k", "-vf", "scale=1280:720",
    ]
    high = filters.compress_args("high", target_size_mb=15)
    assert "-vf" not in high
    assert high[-2:] == ["-b:v", "2000k"]
    with pytest.raises(ValidationError):
        filters.compress_args("ultra")


def test_convert_args_per_format():
    assert filters.convert_args("webm", "high") == ["-c:v", "libvpx-vp9", "-crf", "18", "-b:v", "0", "-c:a", "libopus"]
    assert filters.convert_args("mov") == ["-c:v", "libx264", "-crf", "23", "-preset", "medium", "-c:a", "aac"]
    gif = filters.convert_args("gif")
    assert gif[1] == "fps=10,scale=320:-1:flags=lanczos,split[a][b];[a]palettegen[p];[b][p]paletteuse"
    with pytest.raises(ValidationError):
        filters.convert_args("avi")


def test_export_args_apply_rate_and_size():
    args = filters.export_args("webm", "low", frame_rate=24, width=1280)
    assert args == ["-c:v", "libvpx-vp9", "-c:a", "libopus", "-crf", "40", "-b:v", "0", "-r", "24", "-vf", "scale=1280:-2"]
    assert filters.export_args("mp4", height=720)[-2:] == ["-vf", "scale=-2:720"]
    assert filters.export_args("gif", frame_rate=15, width=480)[1].startswith("fps=15,scale=480:-1:")
    with pytest.raises(ValidationError):
        filters.export_args("mov")


def test_trim_request_requires_end_after_start():
    with pytest.raises(ValueError):
        TrimRequest(video_url="https://cdn/a.mp4", start=5, end=3)


def test_engine_runs_with_inputs_and_args():
    runner = FakeFFmpeg()
    engine = _engine(runner=runner)
    output = engine.run([b"a", b"b"], ["-vf", "hue=s=0"])
    assert output == b"rendered"
    command = runner.commands[-1]
    assert command[0] == "/usr/bin/ffmpeg"
    assert command.count("-i") == 2
    assert command[-3:-1] == ["-vf", "hue=s=0"]


def test_engine_failure_is_reported():
    engine = _engine(runner=FakeFFmpeg(returncode=1))
    with pytest.raises(EngineError) as exc_info:
        engine.run([b"a"], ["-vf", "null"])
    assert "Invalid data" in str(exc_info.value)


def test_engine_missing_binary_can_be_retried():
    found = iter([None, "/opt/ffmpeg"])
    engine = _engine(which=lambda name: next(found))
    with pytest.raises(EngineUnavailable):
        engine.load()
    assert engine.load().path == "/opt/ffmpeg"


def test_engine_loads_once_for_concurrent_callers():
    entered = threading.Event()
    release = threading.Event()
    lookups = []

    def which(name):
        lookups.append(name)
        entered.set()
        release.wait(5)
        return "/usr/bin/ffmpeg"

    engine = _engine(which=which)
    results = []
    first = threading.Thread(target=lambda: results.append(engine.load()))
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=lambda: results.append(engine.load()))
    second.start()
    release.set()
    first.join(5)
    second.join(5)

    assert lookups == ["ffmpeg"]
    assert len(results) == 2
    assert results[0] == results[1]
    assert results[0].version == "ffmpeg version 6.1"


def test_merge_downloads_every_source():
    storage = S3StorageClient(bucket="clipjobs", access_key="", secret_key="")
    storage.upload_bytes("media/local.mp4", b"local", content_type="video/mp4")
    fetched = []

    def handler(request: httpx.Request) -> httpx.Response:
        fetched.append(str(request.url))
        return httpx.Response(200, content=b"remote")

    runner = FakeFFmpeg()
    service = EditService(
        _engine(runner=runner),
        storage,
        Settings(),
        transport=httpx.MockTransport(handler),
    )
    stored = service.merge(MergeRequest(video_urls=["/media/media/local.mp4", "https://cdn.example.com/b.mp4"]))

    assert fetched == ["https://cdn.example.com/b.mp4"]
    assert stored.key.startswith("media/edits/merge/")
    assert storage.download(stored.key) == (b"rendered", "video/mp4")
    assert "concat=n=2:v=1:a=1" in " ".join(runner.commands[-1])


def test_edit_rejects_unsupported_url():
    storage = S3StorageClient(bucket="clipjobs", access_key="", secret_key="")
    service = EditService(_engine(), storage, Settings())
    with pytest.raises(ValidationError):
        service.trim(TrimRequest(video_url="ftp://cdn/a.mp4", start=0, end=2))


def test_edit_endpoints():
    client = TestClient(app)
    storage = get_storage(get_settings())
    storage.upload_bytes("media/source.mp4", b"source", content_type="video/mp4")
    app.dependency_overrides[get_engine] = lambda: _engine()
    app.dependency_overrides[get_transport] = lambda: httpx.MockTransport(lambda r: httpx.Response(404))
    try:
        resp = client.post("/edits:rotate", json={"video_url": "/media/media/source.mp4", "degrees": 90})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        media = client.get(body["video_url"])
        assert media.status_code == 200
        assert media.content == b"rendered"

        invalid = client.post("/edits:rotate", json={"video_url": "/media/media/source.mp4", "degrees": 45})
        assert invalid.status_code == 400

        missing = client.post("/edits:filter", json={"video_url": "https://cdn.example.com/gone.mp4", "filter": "sepia"})
        assert missing.status_code == 500
        assert missing.json()["code"] == "upstream_error"
    finally:
        app.dependency_overrides.clear()


def test_convert_stores_output_with_format_content_type():
    storage = S3StorageClient(bucket="clipjobs", access_key="", secret_key="")
    storage.upload_bytes("media/clip.mp4", b"clip", content_type="video/mp4")
    runner = FakeFFmpeg()
    service = EditService(_engine(runner=runner), storage, Settings())

    stored = service.convert(ConvertRequest(video_url="/media/media/clip.mp4", format="gif"))

    assert stored.key.startswith("media/edits/convert/")
    assert stored.key.endswith(".gif")
    assert stored.content_type == "image/gif"
    assert runner.commands[-1][-1].endswith("output.gif")
    assert storage.download(stored.key) == (b"rendered", "image/gif")


def test_compress_and_export_use_their_own_arguments():
    storage = S3StorageClient(bucket="clipjobs", access_key="", secret_key="")
    storage.upload_bytes("media/clip.mp4", b"clip", content_type="video/mp4")
    runner = FakeFFmpeg()
    service = EditService(_engine(runner=runner), storage, Settings())

    compressed = service.compress(CompressRequest(video_url="/media/media/clip.mp4", quality="low"))
    assert compressed.content_type == "video/mp4"
    assert "scale=1280:720" in runner.commands[-1]

    exported = service.export(ExportRequest(video_url="/media/media/clip.mp4", format="webm", frame_rate=30))
    assert exported.key.endswith(".webm")
    assert exported.content_type == "video/webm"
    assert "libvpx-vp9" in runner.commands[-1]


def test_transform_endpoints_validate_format():
    client = TestClient(app)
    storage = get_storage(get_settings())
    storage.upload_bytes("media/transform.mp4", b"source", content_type="video/mp4")
    app.dependency_overrides[get_engine] = lambda: _engine()
    try:
        resp = client.post("/edits:convert", json={"video_url": "/media/media/transform.mp4", "format": "mov"})
        assert resp.status_code == 200
        assert resp.json()["content_type"] == "video/quicktime"

        resp = client.post("/edits:export", json={"video_url": "/media/media/transform.mp4", "format": "mov"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

        resp = client.post("/edits:compress", json={"video_url": "/media/media/transform.mp4", "quality": "ultra"})
        assert resp.status_code == 400
    finally:
        app.dependency_overrides.clear()

"""Filter-graph builders for the edit endpoints.

Each helper returns the ffmpeg arguments placed between the inputs and the
output file. User-facing ranges (intensity 0..100, correction -100..100) are
mapped onto filter coefficients here.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from clipjobs.errors import ValidationError

MIN_SPEED = 0.25
MAX_SPEED = 4.0

_ROTATIONS = {
    90: "transpose=1",
    180: "transpose=1,transpose=1",
    270: "transpose=2",
}

_SEPIA = "colorchannelmixer=.393:.769:.189:0:.349:.686:.168:0:.272:.534:.131"


def _num(value: float) -> str:
    # + 0.0 folds -0.0 into 0.0
    return f"{round(value, 4) + 0.0:g}"


def preset_filter(name: str, intensity: float = 50) -> str:
    level = max(0.0, min(100.0, float(intensity))) / 100
    if name == "brightness":
        return f"eq=brightness={_num(0.5 + level * 0.5)}"
    if name == "contrast":
        return f"eq=contrast={_num(0.5 + level * 1.5)}"
    if name == "saturation":
        return f"eq=saturation={_num(level * 2)}"
    if name == "blur":
        return f"boxblur={_num(level * 10)}:{_num(level * 10)}"
    if name == "sharpen":
        return f"unsharp=5:5:{_num(level * 2)}:5:5:{_num(level * 0.3)}"
    if name == "vintage":
        return f"curves=vintage,eq=saturation={_num(0.5 + level * 0.5)}"
    if name == "blackwhite":
        return "hue=s=0"
    if name == "sepia":
        return _SEPIA
    raise ValidationError(f"unknown filter: {name}")


def color_correction_filter(options: Mapping[str, float | None]) -> str:
    filters: List[str] = []
    brightness = options.get("brightness")
    if brightness is not None:
        filters.append(f"eq=brightness={_num(0.5 + brightness / 100 * 0.5)}")
    contrast = options.get("contrast")
    if contrast is not None:
        filters.append(f"eq=contrast={_num((contrast + 100) / 100)}")
    saturation = options.get("saturation")
    if saturation is not None:
        filters.append(f"eq=saturation={_num((saturation + 100) / 100)}")
    exposure = options.get("exposure")
    if exposure is not None:
        filters.append(f"eq=gamma={_num(1 + exposure / 100 * 3)}")
    temperature = options.get("temperature")
    if temperature is not None:
        value = temperature / 100
        filters.append(f"colorbalance=rs={_num(value * 0.3)}:gs={_num(-value * 0.1)}:bs={_num(-value * 0.3)}")
    tint = options.get("tint")
    if tint is not None:
        value = tint / 100
        filters.append(f"colorbalance=rm={_num(value * 0.2)}:gm={_num(-value * 0.2)}:bm={_num(value * 0.2)}")
    shadows = options.get("shadows")
    if shadows is not None:
        filters.append(f"curves=shadow={_num(shadows / 100 * 0.5)}")
    highlights = options.get("highlights")
    if highlights is not None:
        filters.append(f"curves=highlight={_num(highlights / 100 * 0.5)}")
    gamma = options.get("gamma")
    if gamma is not None:
        filters.append(f"eq=gamma={_num(0.1 + gamma / 100 * 2.9)}")
    return ",".join(filters) if filters else "null"


def video_filter_args(filter_graph: str) -> List[str]:
    return ["-vf", filter_graph, "-c:a", "copy"]


def clamp_speed(speed: float) -> float:
    return max(MIN_SPEED, min(MAX_SPEED, float(speed)))


def _atempo_chain(speed: float) -> str:
    # atempo accepts 0.5..2.0 per stage
    stages: List[str] = []
    while speed > 2.0:
        stages.append("atempo=2.0")
        speed /= 2.0
    while speed < 0.5:
        stages.append("atempo=0.5")
        speed /= 0.5
    stages.append(f"atempo={_num(speed)}")
    return ",".join(stages)


def speed_args(speed: float) -> List[str]:
    speed = clamp_speed(speed)
    graph = f"[0:v]setpts=PTS/{_num(speed)}[v];[0:a]{_atempo_chain(speed)}[a]"
    return ["-filter_complex", graph, "-map", "[v]", "-map", "[a]"]


def crop_args(width: int, height: int, x: int = 0, y: int = 0) -> List[str]:
    if width <= 0 or height <= 0:
        raise ValidationError("crop width and height must be positive")
    if x < 0 or y < 0:
        raise ValidationError("crop offsets must not be negative")
    return video_filter_args(f"crop={width}:{height}:{x}:{y}")


def rotate_args(degrees: int) -> List[str]:
    transform = _ROTATIONS.get(degrees)
    if transform is None:
        raise ValidationError("rotation must be 90, 180 or 270 degrees")
    return video_filter_args(transform)


def trim_args(start: float, end: float) -> List[str]:
    if start < 0 or end <= start:
        raise ValidationError("trim requires 0 <= start < end")
    return ["-ss", _num(start), "-t", _num(end - start), "-c", "copy"]


def concat_args(count: int, with_audio: bool = True) -> List[str]:
    if count < 2:
        raise ValidationError("at least two videos are required to merge")
    if with_audio:
        inputs = "".join(f"[{idx}:v][{idx}:a]" for idx in range(count))
        graph = f"{inputs}concat=n={count}:v=1:a=1[v][a]"
        return ["-filter_complex", graph, "-map", "[v]", "-map", "[a]"]
    inputs = "".join(f"[{idx}:v]" for idx in range(count))
    return ["-filter_complex", f"{inputs}concat=n={count}:v=1:a=0[v]", "-map", "[v]"]


FORMAT_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "gif": "image/gif",
}

# quality -> (crf, preset, scale)
_COMPRESSION = {
    "low": ("32", "fast", "1280:720"),
    "medium": ("28", "medium", "1920:1080"),
    "high": ("23", "slow", None),
}
_X264_QUALITY = {"low": ("28", "fast"), "medium": ("23", "medium"), "high": ("18", "slow")}
_VP9_CRF = {"low": "40", "medium": "30", "high": "20"}


def _quality(table: Mapping[str, Any], quality: str) -> Any:
    try:
        return table[quality]
    except KeyError:
        raise ValidationError(f"invalid quality, allowed values: {', '.join(table)}") from None


def compress_args(quality: str = "medium", target_size_mb: float | None = None) -> List[str]:
    crf, preset, scale = _quality(_COMPRESSION, quality)
    args = ["-c:v", "libx264", "-crf", crf, "-preset", preset, "-c:a", "aac", "-b:a", "128k"]
    if scale:
        args.extend(["-vf", f"scale={scale}"])
    if target_size_mb:
        # bitrate budget for a one minute clip
        args.extend(["-b:v", f"{int(target_size_mb * 8000 / 60)}k"])
    return args


def gif_args(frame_rate: int = 10, width: int = 320, height: int | None = None) -> List[str]:
    scale = f"scale={width}:{height or -1}:flags=lanczos"
    graph = f"fps={frame_rate},{scale},split[a][b];[a]palettegen[p];[b][p]paletteuse"
    return ["-vf", graph, "-an"]


def convert_args(output_format: str, quality: str = "medium") -> List[str]:
    crf, preset = _quality(_X264_QUALITY, quality)
    if output_format == "gif":
        return gif_args()
    if output_format == "webm":
        return ["-c:v", "libvpx-vp9", "-crf", crf, "-b:v", "0", "-c:a", "libopus"]
    if output_format in ("mp4", "mov"):
        return ["-c:v", "libx264", "-crf", crf, "-preset", preset, "-c:a", "aac"]
    raise ValidationError(f"unsupported format: {output_format}")


def _scale(width: int | None, height: int | None) -> str | None:
    if width and height:
        return f"scale={width}:{height}"
    if width:
        return f"scale={width}:-2"
    if height:
        return f"scale=-2:{height}"
    return None


def export_args(
    output_format: str = "mp4",
    quality: str = "medium",
    frame_rate: int | None = None,
    width: int | None = None,
    height: int | None = None,
) -> List[str]:
    if output_format == "gif":
        return gif_args(frame_rate or 10, width or 320, height)
    if output_format == "mp4":
        crf, _ = _quality(_X264_QUALITY, quality)
        args = ["-c:v", "libx264", "-c:a", "aac", "-crf", crf, "-preset", "medium"]
    elif output_format == "webm":
        crf = _quality(_VP9_CRF, quality)
        args = ["-c:v", "libvpx-vp9", "-c:a", "libopus", "-crf", crf, "-b:v", "0"]
    else:
        raise ValidationError(f"unsupported export format: {output_format}")
    if frame_rate:
        args.extend(["-r", str(frame_rate)])
    scale = _scale(width, height)
    if scale:
        args.extend(["-vf", scale])
    return args


def extract_audio_args() -> List[str]:
    """Mono 16 kHz MP3, the input speech recognition models expect."""
    return ["-vn", "-ac", "1", "-ar", "16000", "-c:a", "libmp3lame", "-b:a", "64k"]

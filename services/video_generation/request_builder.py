"""
Request Builder - validated GenerationRequest and create-task payloads.

Everything here is pure: no I/O, no network. Bad input raises
``ValidationError`` so nothing invalid is ever submitted.

Prompt directives:
    Seedance accepts inline commands appended to the prompt, e.g.
    "A cat surfing --rt 9:16 --dur 8". ``build_request`` lifts known
    directives into the structured fields (an explicit argument always
    wins) and strips them from the prompt. ``build_payload`` renders them
    back from the structured fields, so the fields are the only source of
    truth for what is sent.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from .errors import ValidationError
from .types import (
    AUTO_DURATION,
    FRAMES_PER_SECOND,
    IMAGE_FORMATS,
    MAX_IMAGE_BYTES,
    MAX_PROMPT_LENGTH,
    MODE_IMAGE_COUNTS,
    GenerationRequest,
    ImageInput,
    ImageRole,
    ServiceTier,
    VideoMode,
    VideoRatio,
    VideoResolution,
    image_count_allowed,
    is_valid_duration,
)

logger = logging.getLogger(__name__)

KNOWN_DIRECTIVES = ("rt", "dur", "rs", "fps", "wm", "cf")

_DIRECTIVE_PATTERN = re.compile(r"(?:^|\s)--(\w+)\s+([^\s-]\S*)")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]")
_DATA_URI = re.compile(r"^data:image/([a-zA-Z0-9.+-]+);base64,(.*)$", re.DOTALL)

ImageLike = Union[ImageInput, Mapping[str, Any], str]


def sanitize_prompt(prompt: str) -> str:
    """Trim and drop control characters (tabs and newlines are kept)."""
    return _CONTROL_CHARS.sub("", prompt).strip()


def parse_directives(prompt: str) -> tuple[str, dict[str, str]]:
    """
    Split known ``--key value`` directives out of a prompt.

    Returns:
        (prompt without known directives, {key: value})

    Unknown directives stay in the text. When a key repeats, the last one wins.
    """
    directives: dict[str, str] = {}

    def _take(match: re.Match) -> str:
        key, value = match.group(1).lower(), match.group(2)
        if key not in KNOWN_DIRECTIVES:
            return match.group(0)
        directives[key] = value
        return " " if match.group(0)[:1].isspace() else ""

    cleaned = _DIRECTIVE_PATTERN.sub(_take, prompt)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned).strip()
    return cleaned, directives


def render_directives(request: GenerationRequest) -> str:
    """Directive suffix for a request, e.g. ' --rt 16:9 --dur 8 --rs 720p'."""
    commands = []

    if request.ratio is not VideoRatio.ADAPTIVE:
        commands.append(f"--rt {request.ratio.value}")
    if request.duration != AUTO_DURATION:
        commands.append(f"--dur {request.duration}")
    commands.append(f"--rs {request.resolution.value}")
    if request.watermark:
        commands.append("--wm true")
    if request.camera_fixed:
        commands.append("--cf true")

    return " " + " ".join(commands) if commands else ""


def _coerce_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label}: {value!r} (expected one of {allowed})")


def _coerce_bool(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationError(f"Invalid {label}: {value!r} (expected true or false)")


def _coerce_duration(value: Any, from_directive: bool = False) -> int:
    # Only prompt directives arrive as text; explicit arguments must be ints
    if from_directive:
        try:
            value = int(value)
        except ValueError:
            raise ValidationError(f"Invalid duration: {value!r}")
    if not is_valid_duration(value):
        raise ValidationError("Duration must be between 4-12 seconds or -1 for auto")
    return value


def _coerce_image(image: ImageLike) -> ImageInput:
    if isinstance(image, ImageInput):
        url, role = image.url, image.role
    elif isinstance(image, str):
        url, role = image, None
    elif isinstance(image, Mapping):
        url, role = image.get("url"), image.get("role")
    else:
        raise ValidationError(f"Unsupported image input: {type(image).__name__}")

    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Image URL is required")
    url = url.strip()

    if role is not None:
        role = _coerce_enum(ImageRole, role, "image role")

    if url.startswith("data:"):
        _check_data_uri(url)

    return ImageInput(url=url, role=role)


def _check_data_uri(url: str):
    match = _DATA_URI.match(url)
    if not match:
        raise ValidationError("Inline images must be base64 data URIs (data:image/<format>;base64,...)")

    fmt, payload = match.group(1).lower(), match.group(2)
    if fmt not in IMAGE_FORMATS:
        raise ValidationError(f"Unsupported image format: {fmt}")

    # Decoded size of base64 without decoding
    padding = len(payload) - len(payload.rstrip("="))
    size = len(payload) * 3 // 4 - padding
    if size > MAX_IMAGE_BYTES:
        raise ValidationError(
            f"Image is too large ({size / 1024 / 1024:.1f} MB, max {MAX_IMAGE_BYTES // 1024 // 1024} MB)"
        )


def _check_images(mode: VideoMode, images: tuple[ImageInput, ...]):
    if not image_count_allowed(mode, len(images)):
        required = MODE_IMAGE_COUNTS[mode]
        if isinstance(required, int):
            plural = "" if required == 1 else "s"
            raise ValidationError(f"{mode.value} requires exactly {required} image{plural}")
        raise ValidationError(f"{mode.value} requires {required[0]}-{required[1]} images")

    roles = [image.role for image in images]

    if mode is VideoMode.IMAGE_TO_VIDEO_FIRST:
        if roles[0] not in (None, ImageRole.FIRST_FRAME):
            raise ValidationError("First Frame mode only accepts a first_frame image")

    elif mode is VideoMode.IMAGE_TO_VIDEO_FRAMES:
        if sorted(r.value for r in roles if r) != ["first_frame", "last_frame"]:
            raise ValidationError("First + Last Frame mode requires first_frame and last_frame roles")

    elif mode is VideoMode.IMAGE_TO_VIDEO_REF:
        if any(role is not ImageRole.REFERENCE_IMAGE for role in roles):
            raise ValidationError("All images must have reference_image role in Reference Images mode")


def build_request(
    prompt: str,
    mode: Union[VideoMode, str] = VideoMode.TEXT_TO_VIDEO,
    images: Optional[Iterable[ImageLike]] = None,
    duration: Optional[int] = None,
    resolution: Union[VideoResolution, str, None] = None,
    ratio: Union[VideoRatio, str, None] = None,
    generate_audio: Optional[bool] = None,
    service_tier: Union[ServiceTier, str, None] = None,
    return_last_frame: Optional[bool] = None,
    camera_fixed: Optional[bool] = None,
    watermark: Optional[bool] = None,
) -> GenerationRequest:
    """
    Validate user parameters and produce a GenerationRequest.

    ``None`` means "not specified": a prompt directive fills it in if
    present, otherwise the service default applies.

    Raises:
        ValidationError: on any constraint violation
    """
    if not isinstance(prompt, str):
        raise ValidationError("Prompt is required")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(f"Prompt is too long (max {MAX_PROMPT_LENGTH:,} characters)")

    text, directives = parse_directives(sanitize_prompt(prompt))
    if not text:
        raise ValidationError("Prompt is required")

    mode = _coerce_enum(VideoMode, mode, "video mode")
    image_inputs = tuple(_coerce_image(image) for image in (images or ()))
    _check_images(mode, image_inputs)

    if "fps" in directives and directives["fps"] != str(FRAMES_PER_SECOND):
        raise ValidationError(f"Only {FRAMES_PER_SECOND} fps is supported")

    def _pick(explicit, key: str):
        if explicit is not None:
            if key in directives and directives[key] != str(getattr(explicit, "value", explicit)).lower():
                logger.debug(f"Ignoring --{key} {directives[key]} in prompt, explicit value wins")
            return explicit
        return directives.get(key)

    picked_duration = _pick(duration, "dur")
    picked_resolution = _pick(resolution, "rs")
    picked_ratio = _pick(ratio, "rt")
    picked_watermark = _pick(watermark, "wm")
    picked_camera_fixed = _pick(camera_fixed, "cf")

    fields: dict[str, Any] = {}
    if picked_duration is not None:
        fields["duration"] = _coerce_duration(picked_duration, from_directive=duration is None)
    if picked_resolution is not None:
        fields["resolution"] = _coerce_enum(VideoResolution, picked_resolution, "resolution")
    if picked_ratio is not None:
        fields["ratio"] = _coerce_enum(VideoRatio, picked_ratio, "aspect ratio")
    if service_tier is not None:
        fields["service_tier"] = _coerce_enum(ServiceTier, service_tier, "service tier")
    if generate_audio is not None:
        fields["generate_audio"] = _coerce_bool(generate_audio, "generate_audio")
    if return_last_frame is not None:
        fields["return_last_frame"] = _coerce_bool(return_last_frame, "return_last_frame")
    if picked_watermark is not None:
        fields["watermark"] = _coerce_bool(picked_watermark, "watermark")
    if picked_camera_fixed is not None:
        fields["camera_fixed"] = _coerce_bool(picked_camera_fixed, "camera_fixed")

    return GenerationRequest(prompt=text, mode=mode, images=image_inputs, **fields)


def build_payload(
    request: GenerationRequest,
    model: str,
    execution_expires_after: Optional[int] = 172800,
) -> dict[str, Any]:
    """Render the JSON body for POST /contents/generations/tasks."""
    content: list[dict[str, Any]] = [
        {"type": "text", "text": request.prompt + render_directives(request)},
    ]
    content.extend(image.to_content() for image in request.images)

    payload: dict[str, Any] = {
        "model": model,
        "content": content,
        "generate_audio": request.generate_audio,
        "return_last_frame": request.return_last_frame,
        "service_tier": request.service_tier.value,
    }
    if execution_expires_after is not None:
        payload["execution_expires_after"] = execution_expires_after

    return payload

"""Configuration and logging setup shared by the caption pipeline tools.

Every path, model and strategy setting can be injected through ``CAPTION_*``
environment variables and overridden again by command-line flags.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

STRATEGIES = ("local", "remote", "faster-whisper")

# field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "upload_dir": "CAPTION_UPLOAD_DIR",
    "temp_dir": "CAPTION_TEMP_DIR",
    "published_dir": "CAPTION_PUBLISHED_DIR",
    "database": "CAPTION_DATABASE",
    "strategy": "CAPTION_STRATEGY",
    "model": "CAPTION_MODEL",
    "language": "CAPTION_LANGUAGE",
    "import_language": "CAPTION_IMPORT_LANGUAGE",
    "whisper_bin": "CAPTION_WHISPER_BIN",
    "ffmpeg_bin": "CAPTION_FFMPEG_BIN",
    "remote_api_url": "CAPTION_REMOTE_API_URL",
    "remote_api_key": "OPENAI_API_KEY",
    "remote_model": "CAPTION_REMOTE_MODEL",
    "sample_rate": "CAPTION_SAMPLE_RATE",
    "video_extensions": "CAPTION_VIDEO_EXTENSIONS",
    "manifest": "CAPTION_MANIFEST",
    "audit_log": "CAPTION_AUDIT_LOG",
    "device": "CAPTION_DEVICE",
    "compute_type": "CAPTION_COMPUTE_TYPE",
}

PATH_FIELDS = {"upload_dir", "temp_dir", "published_dir", "database", "manifest", "audit_log"}


def _parse_extensions(value: str) -> Tuple[str, ...]:
    extensions = []
    for ext in value.split(","):
        ext = ext.strip().lower()
        if not ext:
            continue
        extensions.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(extensions)


@dataclass(frozen=True)
class PipelineConfig:
    upload_dir: Path = Path("upload")
    temp_dir: Path = Path("subtitles")
    published_dir: Path = Path("video-storage/captions")
    database: Path = Path("data/captions.db")
    strategy: str = "local"
    model: str = "base"
    language: Optional[str] = None
    import_language: str = "en"
    whisper_bin: str = "whisper"
    ffmpeg_bin: str = "ffmpeg"
    remote_api_url: str = "https://api.openai.com/v1"
    remote_api_key: Optional[str] = field(default=None, repr=False)
    remote_model: str = "whisper-1"
    sample_rate: int = 16000
    video_extensions: Tuple[str, ...] = (".mp4",)
    manifest: Path = Path("logs/caption_manifest.jsonl")
    audit_log: Path = Path("logs/caption_cleanup_audit.jsonl")
    device: str = "cpu"
    compute_type: str = "int8"
    cue_extension: str = ".vtt"

    def __post_init__(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown transcription strategy {self.strategy!r}; expected one of {', '.join(STRATEGIES)}"
            )
        if self.sample_rate <= 0:
            raise ConfigurationError(f"Sample rate must be positive, got {self.sample_rate}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        environ = os.environ if environ is None else environ
        return cls(**_values_from_env(environ))

    @classmethod
    def from_args(
        cls,
        args: argparse.Namespace,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "PipelineConfig":
        """Build a config from environment defaults, then apply any CLI flags that were given."""
        environ = os.environ if environ is None else environ
        values = _values_from_env(environ)
        for name in ENV_VARS:
            value = getattr(args, name, None)
            if value is None:
                continue
            values[name] = _coerce(name, value)
        return cls(**values)

    def with_overrides(self, **changes) -> "PipelineConfig":
        return replace(self, **changes)


def _coerce(name: str, value):
    if name in PATH_FIELDS:
        return Path(value)
    if name == "sample_rate":
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid sample rate: {value!r}") from exc
    if name == "video_extensions":
        if isinstance(value, str):
            return _parse_extensions(value)
        return tuple(value)
    if name == "language":
        value = str(value).strip()
        if not value or value.lower() == "auto":
            return None
    return value


def _values_from_env(environ: Mapping[str, str]) -> Dict[str, object]:
    known = {f.name for f in fields(PipelineConfig)}
    values: Dict[str, object] = {}
    for name, env_name in ENV_VARS.items():
        raw = environ.get(env_name)
        if raw is None or raw == "" or name not in known:
            continue
        values[name] = _coerce(name, raw)
    return values


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the shared configuration flags. Defaults stay ``None`` so the environment wins when omitted."""
    group = parser.add_argument_group("configuration")
    group.add_argument("--upload-dir", dest="upload_dir", type=Path, help="Directory holding source videos ({video_id}.mp4)")
    group.add_argument("--temp-dir", dest="temp_dir", type=Path, help="Temp working directory for generated cue files")
    group.add_argument("--published-dir", dest="published_dir", type=Path, help="Published captions directory")
    group.add_argument("--database", type=Path, help="Path to the SQLite caption registry")
    group.add_argument("--strategy", choices=STRATEGIES, help="Transcription strategy (default: local)")
    group.add_argument("--model", type=str, help="Whisper model size: tiny, base, small, medium, large (default: base)")
    group.add_argument("--language", type=str, help="Language hint (e.g. en, es). Auto-detect when omitted")
    group.add_argument("--whisper-bin", dest="whisper_bin", type=str, help="Local Whisper executable (default: whisper)")
    group.add_argument("--ffmpeg-bin", dest="ffmpeg_bin", type=str, help="FFmpeg executable (default: ffmpeg)")
    group.add_argument("--remote-api-url", dest="remote_api_url", type=str, help="Base URL of the hosted transcription API")
    group.add_argument("--remote-model", dest="remote_model", type=str, help="Remote transcription model (default: whisper-1)")
    group.add_argument("--sample-rate", dest="sample_rate", type=int, help="Audio sample rate for extraction (default: 16000)")
    group.add_argument("--extensions", dest="video_extensions", type=str, help="Comma-separated list of video extensions to include")
    group.add_argument("--log-file", type=Path, help="Optional log file path")
    group.add_argument("--verbose", action="store_true", help="Enable debug logging")


def configure_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

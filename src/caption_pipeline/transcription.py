"""Transcription strategies.

All strategies implement ``transcribe(audio_path, options) -> List[Segment]``
and are selected by :func:`build_transcriber` from the pipeline configuration:

* ``local``: the OpenAI Whisper command-line tool run as a subprocess.
* ``remote``: a hosted OpenAI-compatible ``/audio/transcriptions`` endpoint.
* ``faster-whisper``: Faster-Whisper loaded in-process.
"""

from __future__ import annotations

import enum
import logging
import shutil
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Protocol, Union

import requests

from .audio import require_tool
from .config import PipelineConfig
from .errors import ConfigurationError, CueParseError, ExternalToolError, ServiceError
from .models import Segment
from .webvtt import read_cue_file

LOGGER = logging.getLogger("caption_pipeline.transcription")

WHISPER_HINT = "Install OpenAI Whisper first: pip install openai-whisper"


class WhisperModelSize(str, enum.Enum):
    TINY = "tiny"
    BASE = "base"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @classmethod
    def parse(cls, value: Union[str, "WhisperModelSize"]) -> "WhisperModelSize":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(f"Unknown Whisper model {value!r}; expected one of {choices}") from exc


@dataclass(frozen=True)
class TranscriptionOptions:
    model: str = WhisperModelSize.BASE.value
    language: Optional[str] = None  # None means auto-detect


class Transcriber(Protocol):
    name: str

    def transcribe(self, audio_path: Path, options: TranscriptionOptions) -> List[Segment]:
        ...


def seconds_to_ms(value: Any) -> int:
    return int(round(float(value) * 1000))


class LocalWhisperTranscriber:
    """Runs the ``whisper`` CLI and reads back the VTT it writes to its output directory."""

    name = "local"

    def __init__(self, executable: str = "whisper", output_dir: Optional[Path] = None):
        self.executable = executable
        self.output_dir = output_dir

    def build_command(self, audio_path: Path, options: TranscriptionOptions, output_dir: Path) -> List[str]:
        model = WhisperModelSize.parse(options.model).value
        command = [
            self.executable,
            str(audio_path),
            "--model",
            model,
            "--output_format",
            "vtt",
            "--output_dir",
            str(output_dir),
        ]
        if options.language:
            command += ["--language", options.language]
        return command

    def transcribe(self, audio_path: Path, options: TranscriptionOptions) -> List[Segment]:
        audio_path = Path(audio_path)
        whisper = require_tool(self.executable, "Whisper", WHISPER_HINT)

        owns_dir = self.output_dir is None
        output_dir = Path(tempfile.mkdtemp(prefix="caption_whisper_")) if owns_dir else self.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        result_path = output_dir / f"{audio_path.stem}.vtt"

        command = self.build_command(audio_path, options, output_dir)
        command[0] = whisper
        LOGGER.debug("Running Whisper: %s", " ".join(command))

        try:
            result = subprocess.run(command, capture_output=True, text=True)
            if result.returncode != 0:
                stderr_preview = (result.stderr or result.stdout or "").splitlines()[-5:]
                raise ExternalToolError(
                    "Whisper",
                    f"Whisper failed for {audio_path}: return code {result.returncode}\n" + "\n".join(stderr_preview),
                )
            if not result_path.exists():
                raise ExternalToolError("Whisper", f"Whisper did not write {result_path}")

            try:
                segments = read_cue_file(result_path)
            except CueParseError as exc:
                raise ExternalToolError("Whisper", f"Whisper returned no segments for {audio_path}: {exc}") from exc
        finally:
            if owns_dir:
                shutil.rmtree(output_dir, ignore_errors=True)
            else:
                result_path.unlink(missing_ok=True)

        return segments


class RemoteApiTranscriber:
    """Uploads audio to an OpenAI-compatible transcription API and parses ``verbose_json`` segments."""

    name = "remote"

    def __init__(
        self,
        api_url: str = "https://api.openai.com/v1",
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        timeout: float = 600,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/audio/transcriptions"

    def transcribe(self, audio_path: Path, options: TranscriptionOptions) -> List[Segment]:
        audio_path = Path(audio_path)
        with open(audio_path, "rb") as audio_file:
            return self._post(audio_file, audio_path.name, "audio/wav", options)

    def transcribe_bytes(
        self,
        payload: bytes,
        filename: str = "audio.webm",
        content_type: str = "audio/webm",
        options: Optional[TranscriptionOptions] = None,
    ) -> List[Segment]:
        return self._post(payload, filename, content_type, options or TranscriptionOptions())

    def _post(
        self,
        payload: Union[bytes, IO[bytes]],
        filename: str,
        content_type: str,
        options: TranscriptionOptions,
    ) -> List[Segment]:
        if not self.api_key:
            raise ServiceError(None, "No API key configured for the remote transcription service (set OPENAI_API_KEY)")

        data: Dict[str, str] = {
            "model": self.model,
            "response_format": "verbose_json",
        }
        if options.language:
            data["language"] = options.language

        LOGGER.debug("Sending audio to remote transcription service: %s", self.endpoint)
        poster = self.session.post if self.session is not None else requests.post
        try:
            response = poster(
                self.endpoint,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": (filename, payload, content_type)},
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ServiceError(None, f"Remote transcription request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ServiceError(response.status_code, _error_message(response))

        try:
            body = response.json()
        except ValueError as exc:
            raise ServiceError(response.status_code, "Remote transcription returned invalid JSON") from exc

        segments = parse_verbose_segments(body)
        if not segments:
            raise ServiceError(response.status_code, "No segments returned from Whisper")
        return segments


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason or "unknown error").strip()
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    if error:
        return str(error)
    return str(body)


def parse_verbose_segments(body: Any) -> List[Segment]:
    """Convert a ``verbose_json`` payload (seconds) into millisecond segments, skipping malformed entries."""
    if not isinstance(body, dict):
        return []
    segments: List[Segment] = []
    for raw in body.get("segments") or []:
        if not isinstance(raw, dict):
            continue
        try:
            start = max(0, seconds_to_ms(raw["start"]))
            end = max(0, seconds_to_ms(raw["end"]))
        except (KeyError, TypeError, ValueError):
            LOGGER.debug("Skipping malformed segment %r", raw)
            continue
        text = str(raw.get("text") or "").strip()
        if not text:
            continue
        segments.append(Segment(start_ms=start, end_ms=max(start, end), text=text))
    return segments


class WhisperModelHolder(threading.local):
    def __init__(self) -> None:
        super().__init__()
        self.models: Dict[str, Any] = {}


MODEL_HOLDER = WhisperModelHolder()


def _load_whisper_model(name: str, device: str, compute_type: str) -> Any:
    from faster_whisper import WhisperModel

    LOGGER.info("Loading Whisper model %s (device=%s, compute_type=%s)...", name, device, compute_type)
    model = WhisperModel(name, device=device, compute_type=compute_type)
    LOGGER.info("Model %s loaded successfully", name)
    return model


class FasterWhisperTranscriber:
    """In-process Faster-Whisper with a per-thread model cache."""

    name = "faster-whisper"

    def __init__(self, device: str = "cpu", compute_type: str = "int8", beam_size: int = 5):
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size

    def get_model(self, model_name: str) -> Any:
        if model_name in MODEL_HOLDER.models:
            return MODEL_HOLDER.models[model_name]

        try:
            model = _load_whisper_model(model_name, self.device, self.compute_type)
        except ImportError as exc:
            raise ExternalToolError("Faster-Whisper", "faster-whisper is not installed", "pip install faster-whisper") from exc
        except RuntimeError as exc:
            if self.device != "cuda":
                raise ExternalToolError("Faster-Whisper", f"Failed to load model {model_name}: {exc}") from exc
            LOGGER.warning(
                "CUDA initialisation failed for %s (%s). Falling back to CPU with float32 compute type.",
                model_name,
                exc,
            )
            model = _load_whisper_model(model_name, "cpu", "float32")

        MODEL_HOLDER.models[model_name] = model
        return model

    def transcribe(self, audio_path: Path, options: TranscriptionOptions) -> List[Segment]:
        model_name = WhisperModelSize.parse(options.model).value
        model = self.get_model(model_name)
        seg_iter, info = model.transcribe(
            str(audio_path),
            beam_size=self.beam_size,
            language=options.language,
            task="transcribe",
        )
        segments = [
            Segment(start_ms=seconds_to_ms(seg.start), end_ms=seconds_to_ms(seg.end), text=(seg.text or "").strip())
            for seg in seg_iter
        ]
        segments = [seg for seg in segments if seg.text]
        if info is not None and getattr(info, "language", None):
            LOGGER.debug("Detected language %s for %s", info.language, audio_path)
        if not segments:
            raise ExternalToolError("Faster-Whisper", f"Faster-Whisper returned no segments for {audio_path}")
        return segments


def build_transcriber(config: PipelineConfig) -> Transcriber:
    if config.strategy == "local":
        return LocalWhisperTranscriber(executable=config.whisper_bin)
    if config.strategy == "remote":
        return RemoteApiTranscriber(
            api_url=config.remote_api_url,
            api_key=config.remote_api_key,
            model=config.remote_model,
        )
    if config.strategy == "faster-whisper":
        return FasterWhisperTranscriber(device=config.device, compute_type=config.compute_type)
    raise ConfigurationError(f"Unknown transcription strategy {config.strategy!r}")


def options_from_config(config: PipelineConfig) -> TranscriptionOptions:
    """The remote API takes its own model name; the size enum only applies to the Whisper strategies."""
    if config.strategy == "remote":
        return TranscriptionOptions(model=config.remote_model, language=config.language)
    return TranscriptionOptions(model=WhisperModelSize.parse(config.model).value, language=config.language)

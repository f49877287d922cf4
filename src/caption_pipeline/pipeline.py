"""Caption generation: single-video entry point and the batch driver.

Per video the order is fixed: audio extraction, then transcription, then cue
encoding. The cue file is written atomically, so a concurrent reconciliation
never sees a half-written document. Existing outputs are the only idempotence
mechanism: a valid temp artifact or any published caption for the video means
the video is skipped without invoking an external tool.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from .audio import probe_duration, temporary_audio
from .config import PipelineConfig
from .errors import NotFoundError
from .locator import ArtifactLocator, is_valid_video_id, temp_artifact_name
from .manifest import Manifest, human_time
from .registry import VideoCatalog
from .transcription import Transcriber, TranscriptionOptions, build_transcriber, options_from_config
from .webvtt import atomic_write, is_valid_cue_file, segments_to_webvtt

LOGGER = logging.getLogger("caption_pipeline.pipeline")


def default_output_path(video_path: Path, extension: str = ".vtt") -> Path:
    return video_path.with_suffix(extension)


def discard_invalid_output(path: Path) -> bool:
    """Remove a zero-byte or truncated cue file left by an interrupted run. Returns True if one was removed."""
    if not path.exists() or is_valid_cue_file(path):
        return False
    LOGGER.warning("Removing invalid cue file %s from an earlier run", path)
    path.unlink(missing_ok=True)
    return True


def transcribe_video(
    video_path: Path,
    output_path: Path,
    transcriber: Transcriber,
    options: TranscriptionOptions,
    sample_rate: int = 16000,
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    """Extract, transcribe and encode one video into `output_path`. Always regenerates."""
    with temporary_audio(video_path, sample_rate=sample_rate, ffmpeg_bin=ffmpeg_bin) as audio_path:
        LOGGER.debug("Transcribing %s with %s (model=%s, language=%s)",
                     audio_path, transcriber.name, options.model, options.language or "auto")
        segments = transcriber.transcribe(audio_path, options)

    content = segments_to_webvtt(segments)
    atomic_write(output_path, content)
    LOGGER.info("Wrote %d cues to %s", content.count(" --> "), output_path)
    return output_path


def generate(
    video_path: Path,
    output_path: Optional[Path] = None,
    model: Optional[str] = None,
    language: Optional[str] = None,
    transcriber: Optional[Transcriber] = None,
    config: Optional[PipelineConfig] = None,
    skip_existing: bool = True,
) -> Path:
    """
    Generate a WebVTT caption file for a single video.

    Parameters:
        video_path: Source video container.
        output_path: Destination cue file; defaults to the video path with a .vtt suffix.
        model: Whisper model size (tiny, base, small, medium, large); defaults to the config value.
        language: Language hint; auto-detect when None.
        transcriber: Strategy to use; built from `config` when omitted.
        skip_existing: Return immediately when a valid cue file already exists at `output_path`.

    Raises:
        NotFoundError, ExternalToolError, ServiceError, EmptyTranscriptionError
    """
    config = config or PipelineConfig()
    video_path = Path(video_path)
    if not video_path.is_file():
        raise NotFoundError(f"Video file not found: {video_path}")

    output_path = Path(output_path) if output_path else default_output_path(video_path, config.cue_extension)

    if skip_existing and is_valid_cue_file(output_path):
        LOGGER.info("Skipping %s (caption file already exists: %s)", video_path.name, output_path)
        return output_path
    discard_invalid_output(output_path)

    overrides = {}
    if model is not None:
        overrides["model"] = model
    if language is not None:
        overrides["language"] = language
    if overrides:
        config = config.with_overrides(**overrides)

    transcriber = transcriber or build_transcriber(config)
    return transcribe_video(
        video_path,
        output_path,
        transcriber,
        options_from_config(config),
        sample_rate=config.sample_rate,
        ffmpeg_bin=config.ffmpeg_bin,
    )


@dataclass
class VideoJob:
    video_id: str
    video_path: Path
    output_path: Path


@dataclass
class BatchSummary:
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[Dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def record(self, result: Dict) -> None:
        self.results.append(result)
        status = result.get("status")
        if status == "success":
            self.processed += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1


def discover_video_jobs(
    upload_dir: Path,
    temp_dir: Path,
    extensions: Iterable[str],
    video_catalog: Optional[VideoCatalog] = None,
    cue_extension: str = ".vtt",
) -> List[VideoJob]:
    """List candidate videos named ``{video_id}{ext}`` in `upload_dir`, restricted to catalog ids when given."""
    extensions = {ext.lower() for ext in extensions}
    if not upload_dir.is_dir():
        raise NotFoundError(f"Upload directory not found: {upload_dir}")

    known_ids: Optional[Set[str]] = None
    if video_catalog is not None:
        known_ids = set(video_catalog.list_video_ids())

    jobs: List[VideoJob] = []
    for path in sorted(upload_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() not in extensions:
            continue
        video_id = path.stem
        if not is_valid_video_id(video_id):
            LOGGER.warning("Skipping %s: file name is not a valid video id", path.name)
            continue
        if known_ids is not None and video_id not in known_ids:
            LOGGER.warning("Skipping %s: video %s is not in the catalog", path.name, video_id)
            continue
        jobs.append(VideoJob(video_id, path, temp_dir / temp_artifact_name(video_id, cue_extension)))
    return jobs


def skip_reason(job: VideoJob, published_ids: Set[str]) -> Optional[str]:
    if job.video_id in published_ids:
        return "published caption exists"
    if is_valid_cue_file(job.output_path):
        return "temp caption exists"
    return None


def process_job(
    job: VideoJob,
    config: PipelineConfig,
    transcriber: Transcriber,
    manifest: Optional[Manifest] = None,
) -> Dict:
    """Run one video through the pipeline. Failures are returned as error records, never raised."""
    start_time = time.time()
    LOGGER.info("Processing %s", job.video_path)

    try:
        discard_invalid_output(job.output_path)
        duration = probe_duration(job.video_path)
        transcribe_video(
            job.video_path,
            job.output_path,
            transcriber,
            options_from_config(config),
            sample_rate=config.sample_rate,
            ffmpeg_bin=config.ffmpeg_bin,
        )
        record = {
            "video_id": job.video_id,
            "video_path": str(job.video_path),
            "vtt": str(job.output_path),
            "status": "success",
            "strategy": transcriber.name,
            "duration": duration,
            "processed_at": human_time(),
            "processing_time_sec": round(time.time() - start_time, 2),
        }
    except Exception as exc:
        LOGGER.error("Failed to process %s: %s", job.video_path, exc)
        record = {
            "video_id": job.video_id,
            "video_path": str(job.video_path),
            "vtt": str(job.output_path),
            "status": "error",
            "error_type": type(exc).__name__,
            "error": str(exc),
            "processed_at": human_time(),
        }

    if manifest is not None:
        manifest.append(record)
    return record


def run_batch(
    config: PipelineConfig,
    transcriber: Optional[Transcriber] = None,
    video_catalog: Optional[VideoCatalog] = None,
    force: bool = False,
    max_files: Optional[int] = None,
    workers: int = 1,
    progress: bool = False,
    manifest: Optional[Manifest] = None,
) -> BatchSummary:
    """Generate temp caption files for every candidate video in the upload directory."""
    transcriber = transcriber or build_transcriber(config)
    jobs = discover_video_jobs(
        config.upload_dir,
        config.temp_dir,
        config.video_extensions,
        video_catalog=video_catalog,
        cue_extension=config.cue_extension,
    )
    config.temp_dir.mkdir(parents=True, exist_ok=True)

    locator = ArtifactLocator(config.temp_dir, config.published_dir, extension=config.cue_extension)
    published_ids = {artifact.video_id for artifact in locator.list_published_artifacts().values()}

    summary = BatchSummary()
    pending: List[VideoJob] = []
    for job in jobs:
        reason = None if force else skip_reason(job, published_ids)
        if reason:
            LOGGER.info("Skipping %s (%s)", job.video_path.name, reason)
            summary.record({"video_id": job.video_id, "status": "skipped", "reason": reason})
        else:
            pending.append(job)

    if max_files is not None:
        if max_files <= 0:
            LOGGER.warning("--max-files must be greater than zero; no work will be performed")
            pending = []
        else:
            pending = pending[:max_files]

    summary.total = len(pending) + summary.skipped
    if not pending:
        LOGGER.info("No videos to process.")
        return summary

    LOGGER.info("Processing %d videos (%d skipped)", len(pending), summary.skipped)

    progress_bar = tqdm(total=len(pending), desc="Transcribing", unit="video") if progress else None
    try:
        if workers > 1:
            LOGGER.info("Using %d worker threads", workers)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(process_job, job, config, transcriber, manifest) for job in pending]
                try:
                    for future in as_completed(futures):
                        summary.record(future.result())
                        if progress_bar is not None:
                            progress_bar.update(1)
                except KeyboardInterrupt:
                    LOGGER.warning("Interrupted by user. Cancelling remaining jobs...")
                    for future in futures:
                        future.cancel()
                    raise
        else:
            for job in pending:
                summary.record(process_job(job, config, transcriber, manifest))
                if progress_bar is not None:
                    progress_bar.update(1)
    finally:
        if progress_bar is not None:
            progress_bar.close()

    return summary

#!/usr/bin/env python3
"""
HTTP subtitle generation service.

Receives an audio upload, transcribes it with the configured strategy, stores
the resulting WebVTT file as ``subs_{timestamp_ms}.vtt`` and returns its public
URL. Generated files are served back under ``/subtitles/``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..errors import ConfigurationError
from ..models import Segment
from ..transcription import Transcriber, TranscriptionOptions, build_transcriber, options_from_config
from ..webvtt import atomic_write, segments_to_webvtt

LOGGER = logging.getLogger("caption_pipeline.services.subtitle_server")


def subtitle_file_name(timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"subs_{timestamp_ms}.vtt"


def _transcribe_upload(
    transcriber: Transcriber,
    payload: bytes,
    filename: str,
    content_type: str,
    options: TranscriptionOptions,
) -> List[Segment]:
    transcribe_bytes = getattr(transcriber, "transcribe_bytes", None)
    if transcribe_bytes is not None:
        return transcribe_bytes(payload, filename=filename, content_type=content_type, options=options)

    suffix = Path(filename).suffix or ".webm"
    with tempfile.NamedTemporaryFile(prefix="caption_upload_", suffix=suffix, delete=False) as tmp:
        tmp.write(payload)
        tmp_path = Path(tmp.name)
    try:
        return transcriber.transcribe(tmp_path, options)
    finally:
        tmp_path.unlink(missing_ok=True)


def create_app(
    config: Optional[PipelineConfig] = None,
    transcriber: Optional[Transcriber] = None,
    output_dir: Optional[Path] = None,
) -> FastAPI:
    config = config or PipelineConfig.from_env()
    transcriber = transcriber or build_transcriber(config)
    output_dir = Path(output_dir or config.temp_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Caption subtitle service")
    app.state.config = config
    app.state.transcriber = transcriber
    app.state.output_dir = output_dir

    @app.post("/api/generate-subtitles")
    async def generate_subtitles(
        request: Request,
        audio: Optional[UploadFile] = File(None),
        language: Optional[str] = Form(None),
    ):
        if audio is None:
            return JSONResponse({"error": "Audio file is required"}, status_code=400)

        payload = await audio.read()
        if not payload:
            return JSONResponse({"error": "Audio file is required"}, status_code=400)

        options = options_from_config(config)
        if language:
            options = TranscriptionOptions(model=options.model, language=language)

        try:
            segments = await run_in_threadpool(
                _transcribe_upload,
                transcriber,
                payload,
                audio.filename or "audio.webm",
                audio.content_type or "audio/webm",
                options,
            )
            if not segments:
                return JSONResponse({"error": "No segments returned from Whisper"}, status_code=500)
            content = segments_to_webvtt(segments)
            name = subtitle_file_name()
            await run_in_threadpool(atomic_write, output_dir / name, content)
        except Exception as exc:
            LOGGER.error("Error generating subtitles: %s", exc)
            return JSONResponse(
                {"error": "Failed to generate subtitles", "details": str(exc)},
                status_code=500,
            )

        LOGGER.info("Generated %s (%d cues)", name, len(segments))
        return JSONResponse({"vttUrl": str(request.url_for("subtitles", path=name))})

    @app.get("/health")
    async def health():
        return {"status": "healthy", "strategy": getattr(transcriber, "name", "unknown")}

    app.mount("/subtitles", StaticFiles(directory=str(output_dir), check_dir=False), name="subtitles")
    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Subtitle generation HTTP service")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3001, help="Port to listen on (default: 3001)")
    parser.add_argument("--output-dir", type=Path, help="Directory for generated subtitle files (default: temp dir)")
    add_config_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.verbose, args.log_file)
    try:
        config = PipelineConfig.from_args(args)
        app = create_app(config, output_dir=args.output_dir)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        sys.exit(2)

    LOGGER.info("Subtitle server running on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Enhanced logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("stemfetch", log_dir=Path("logs"))
        logger.info("job_submitted", job_id="abc123", filename="song.wav")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        self.json_log_path: Path | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"stemfetch_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class JobLogger:
    """Specialized logger for separation job events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def job_submitted(self, job_id: str, filename: str, params) -> None:
        self.logger.info(
            "job_submitted",
            job_id=job_id,
            filename=filename,
            models=params.models or ([params.model] if params.model else []),
            output_format=params.output_format,
        )

    def job_progress(self, job_id: str, status) -> None:
        self.logger.debug(
            "job_progress",
            job_id=job_id,
            status=status.state.value,
            progress=status.progress,
            current_model_index=status.current_model_index,
            total_models=status.total_models,
        )

    def file_downloaded(self, job_id: str, result) -> None:
        self.logger.info(
            "file_downloaded",
            job_id=job_id,
            filename=result.filename,
            route=result.route.value,
            size_bytes=result.size_bytes,
            size_mb=round(result.size_bytes / (1024 * 1024), 2),
        )

    def file_failed(self, job_id: str, result) -> None:
        self.logger.error(
            "file_download_failed",
            job_id=job_id,
            filename=result.filename,
            route=result.route.value,
            status_code=result.status_code,
            error=result.error,
        )

    def job_finished(self, result) -> None:
        """Log the terminal result of a run."""
        self.logger.info(
            "job_finished",
            job_id=result.job_id,
            status=result.status.value,
            state=result.state.value,
            files_downloaded=len(result.succeeded),
            files_failed=len(result.failed),
            total_size_mb=round(result.total_bytes / (1024 * 1024), 2),
            duration_s=round(result.elapsed_s, 2),
            error=str(result.first_error) if result.first_error else None,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, JobLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, job_logger)
    """
    base = StructuredLogger(
        "stemfetch.events",
        log_dir=log_dir,
        enable_json=enable_json,
        enable_console=False,
    )
    return base, JobLogger(base)

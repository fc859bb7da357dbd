"""Structured logging: console and JSON-lines event file."""

import json
import logging
import os
import sys
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from nextrial.core.config import config


def _format_duration(seconds: float) -> str:
    if seconds < 0:
        return "0s"
    if seconds >= 60:
        m = int(seconds // 60)
        s = seconds % 60
        if s < 0.05:
            return f"{m}m"
        return f"{m}m {s:.0f}s"
    if seconds >= 1:
        return f"{seconds:.1f}s"
    if seconds > 0:
        return f"{seconds * 1000:.0f}ms"
    return "0s"


def _preview(text: str, max_len: int = 80) -> str:
    s = (text or "").strip().replace("\n", " ")
    return s[:max_len] + "..." if len(s) > max_len else s


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    # 38;5;N = foreground 256-color
    codes = {
        "dim": "\033[38;5;239m",
        "search": "\033[38;5;81m",
        "ok": "\033[38;5;78m",
        "fail": "\033[38;5;203m",
        "duration": "\033[38;5;221m",
        "circuit": "\033[38;5;214m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class NexTrialLogger:
    def __init__(self):
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = config.logs_dir / "session.log"
        self._file_lock = threading.Lock()
        self._log_file_handle = open(self.log_file, "a", encoding="utf-8")
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("nextrial")
        self.console.setLevel(logging.DEBUG)
        self._console_formatter = logging.Formatter(
            "%(asctime)s │ %(message)s", datefmt="%H:%M:%S"
        )
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(self._console_formatter)
            self.console.addHandler(handler)

    def log_event(self, event: LogEvent) -> None:
        with self._file_lock:
            self._log_file_handle.write(event.to_json() + "\n")
            self._log_file_handle.flush()

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def _event(self, event_type: str, **data: Any) -> None:
        self.log_event(
            LogEvent(event_type=event_type, timestamp=self._timestamp(), data=data)
        )

    def query_submitted(self, conversation_id: str, text: str, scope: list[str]):
        self._event(
            "QUERY_SUBMITTED",
            conversation_id=conversation_id,
            query=text[:500],
            scope=scope,
        )
        scope_note = f"  [{', '.join(scope)}]" if scope else ""
        self.console.info(f"Query: {_preview(text, 100)}{scope_note}")

    def search_request(self, path: str, payload: dict | None = None):
        self._event("SEARCH_REQUEST", path=path, payload=payload or {})
        self.console.debug(f"{_c('search')}→ {path}{_reset()}")

    def search_response(
        self,
        path: str,
        status: int | None,
        duration_seconds: float,
        *,
        error: str | None = None,
    ):
        self._event(
            "SEARCH_RESPONSE",
            path=path,
            status=status,
            duration_seconds=round(duration_seconds, 3),
            error=error,
        )
        dur = f"{_c('duration')}{_format_duration(duration_seconds)}{_reset()}"
        if error:
            self.console.info(
                f"{_c('fail')}✗ {path}{_reset()}  {dur}  {_preview(error)}"
            )
        else:
            self.console.info(f"{_c('ok')}✓ {path}{_reset()}  {status}  {dur}")

    def message_saved(self, conversation_id: str, message_id: str, role: str):
        self._event(
            "MESSAGE_SAVED",
            conversation_id=conversation_id,
            message_id=message_id,
            role=role,
        )
        self.console.debug(f"Saved {role} message {message_id}")

    def persistence_failed(self, conversation_id: str, role: str, exception: Exception):
        self._event(
            "PERSISTENCE_FAILED",
            conversation_id=conversation_id,
            role=role,
            exception=str(exception),
        )
        self.console.error(
            f"❌ Could not save {role} message for {conversation_id}: {exception}"
        )

    def circuit_state(self, state: str, failures: int, retry_after: float = 0.0):
        self._event(
            "CIRCUIT_STATE",
            state=state,
            failures=failures,
            retry_after=round(retry_after, 1),
        )
        suffix = f", retry in {_format_duration(retry_after)}" if retry_after else ""
        self.console.warning(
            f"{_c('circuit')}⚡ Circuit {state} ({failures} failures{suffix}){_reset()}"
        )

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self._event(
            "ERROR",
            message=message,
            exception=str(exception) if exception else None,
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        if exception and "exc_info" not in log_kwargs:
            log_kwargs["exc_info"] = exception
        self.console.error(f"❌ Error: {message}", *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.info(message, *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._event("WARNING", message=message[:500])
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.warning(f"⚠️ {message}", *args, **log_kwargs)

    def exception(self, message: str, *args, **kwargs):
        self._event("ERROR", message=message[:500])
        self.console.exception(f"❌ {message}", *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._event("DEBUG", message=message)
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.debug(message, *args, **log_kwargs)

    def close(self) -> None:
        with self._file_lock:
            if not self._log_file_handle.closed:
                self._log_file_handle.close()


logger = NexTrialLogger()

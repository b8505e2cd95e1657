# Where: lambda_api_e2e/logging.py
# What: Console printers, per-variant log sinks and command redaction.
# Why: Variants may run side by side, so every line carries its variant label.
from __future__ import annotations

import re
import threading
import urllib.parse
from pathlib import Path
from typing import Callable, Sequence, TextIO

_OUTPUT_LOCK = threading.Lock()
_SECRET_KEY_RE = re.compile(r"(PASSWORD|PASSWD|SECRET|TOKEN|CREDENTIAL|API_KEY)", re.IGNORECASE)
_MASK = "***"


def safe_print(message: str = "", *, prefix: str | None = None) -> None:
    with _OUTPUT_LOCK:
        if prefix:
            print(f"{prefix} {message}", flush=True)
        else:
            print(message, flush=True)


class LogSink:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: TextIO | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8")

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "LogSink":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def write_line(self, line: str) -> None:
        if self._file is None:
            raise RuntimeError("LogSink is not open")
        with self._lock:
            self._file.write(f"{line}\n")
            self._file.flush()


def make_prefix_printer(
    label: str, phase: str | None = None, *, width: int = 0
) -> Callable[[str], None]:
    formatted = label.ljust(width) if width > 0 else label
    if phase:
        prefix = f"[{formatted}][{phase}] |"
    else:
        prefix = f"[{formatted}]"

    def _printer(line: str) -> None:
        safe_print(line, prefix=prefix)

    return _printer


def tee_printer(
    log: LogSink, printer: Callable[[str], None] | None = None
) -> Callable[[str], None]:
    """Write each line to the sink and, when given, to a console printer."""

    def _printer(line: str) -> None:
        log.write_line(line)
        if printer:
            printer(line)

    return _printer


def redact_cmd(cmd: Sequence[str]) -> list[str]:
    return [_redact_token(str(token)) for token in cmd]


def _redact_token(token: str) -> str:
    key, sep, value = token.partition("=")
    if sep and "://" not in key:
        canonical_key = key.strip("\"'").lstrip("-")
        if _SECRET_KEY_RE.search(canonical_key):
            return f"{key}={_MASK}"
        if "://" in value:
            return f"{key}={_redact_url(value)}"
        return token
    if "://" in token:
        return _redact_url(token)
    return token


def _redact_url(raw: str) -> str:
    try:
        parsed = urllib.parse.urlsplit(raw.strip())
    except ValueError:
        return raw
    if not parsed.scheme or not parsed.hostname:
        return raw
    if parsed.username is None:
        return raw
    username = urllib.parse.quote(_MASK, safe="")
    password = urllib.parse.quote(_MASK, safe="") if parsed.password is not None else ""
    auth = username if password == "" else f"{username}:{password}"
    host = parsed.hostname
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if parsed.port is not None:
        host = f"{host}:{parsed.port}"
    netloc = f"{auth}@{host}"
    return urllib.parse.urlunsplit(
        (parsed.scheme, netloc, parsed.path, parsed.query, parsed.fragment)
    )

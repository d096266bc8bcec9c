"""AuditLogger — append-only audit trail with secret redaction.

Every event is serialized once and the *serialized text* is scanned for
secret-shaped substrings, so a token hidden anywhere in the record is
caught, not only in known fields. A record that trips a pattern is
persisted in redacted form, flagged ``redacted: true``, with its details
replaced by a marker.

Sinks:
- JSON Lines file (primary, one line per event)
- SQL table (optional mirror, table name configurable)

Writing is best-effort. Sink failures are logged and dropped; they never
reach the caller and never change a control decision.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

from pydantic import ValidationError
from sqlalchemy.engine import Engine

from cortex_guard.config import AppConfig
from cortex_guard.core.protocols import AuditEvent, RedactionResult
from cortex_guard.models.audit_record import audit_table

logger = logging.getLogger(__name__)

REDACTED_MARKER = "[REDACTED]"
REDACTED_DETAILS: Dict[str, Any] = {"_redacted": True}

DEFAULT_REDACT_PATTERNS: List[re.Pattern[str]] = [
    # Bearer tokens
    re.compile(r"Bearer\s+[A-Za-z0-9\-_.=]+"),
    # api_key / api-key / apikey = value, optionally quoted. Quotes may arrive
    # backslash-escaped because the scan runs on serialized JSON.
    re.compile(r"""(api[_-]?key(?:\\?["'])?\s*[:=]\s*(?:\\?["'])?)([A-Za-z0-9\-_.]{8,})""", re.IGNORECASE),
    # token = value
    re.compile(r"""(token(?:\\?["'])?\s*[:=]\s*(?:\\?["'])?)([A-Za-z0-9\-_.]{8,})""", re.IGNORECASE),
    # Slack-style bot / user / app tokens
    re.compile(r"xox[baprs]-[A-Za-z0-9-]{10,}"),
]


def _replace_secret(m: re.Match) -> str:
    # Two-group patterns keep their key prefix and lose only the value.
    if m.re.groups >= 2:
        return f"{m.group(1)}{REDACTED_MARKER}"
    return REDACTED_MARKER


def redact_text(
    text: str, patterns: Sequence[re.Pattern[str]] = DEFAULT_REDACT_PATTERNS
) -> RedactionResult:
    """Replace every secret-shaped substring in *text*.

    ``changed`` is decided by a search before substitution, never by
    comparing the output.
    """
    changed = False
    for pattern in patterns:
        if pattern.search(text) is None:
            continue
        changed = True
        text = pattern.sub(_replace_secret, text)
    return RedactionResult(text=text, changed=changed)


class AuditLogger:
    """Best-effort audit trail writer and reader."""

    def __init__(
        self,
        jsonl_path: Union[str, Path],
        engine: Optional[Engine] = None,
        table_name: str = "audit_log",
        redact_patterns: Optional[Iterable[Union[str, re.Pattern[str]]]] = None,
    ) -> None:
        self._path = Path(jsonl_path).expanduser()
        self._engine = engine
        self._table_name = table_name
        self._table_ready = False
        self._patterns: List[re.Pattern[str]] = list(DEFAULT_REDACT_PATTERNS)
        for p in redact_patterns or ():
            self._patterns.append(re.compile(p) if isinstance(p, str) else p)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: AppConfig) -> "AuditLogger":
        engine = None
        if config.audit.structured_sink:
            from cortex_guard.database import get_engine

            engine = get_engine()
        return cls(
            jsonl_path=config.audit.jsonl_path,
            engine=engine,
            table_name=config.audit.table,
            redact_patterns=config.audit.redact_patterns,
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def table_name(self) -> str:
        return self._table_name

    # ── Write path ──

    def prepare(self, event: AuditEvent) -> Dict[str, Any]:
        """Return the record that will actually be persisted for *event*."""
        line = event.model_dump_json(exclude_none=True)
        result = redact_text(line, self._patterns)
        if not result.changed:
            return json.loads(line)

        try:
            record = json.loads(result.text)
        except json.JSONDecodeError:
            # A custom pattern cut through the JSON structure; keep only
            # what survives redaction on its own.
            record = {
                "ts": event.ts,
                "event": redact_text(event.event, self._patterns).text,
            }
        record["redacted"] = True
        record["details"] = dict(REDACTED_DETAILS)
        return record

    def record(self, event: AuditEvent) -> Dict[str, Any]:
        """Write *event* to every sink synchronously. Never raises on sink failure."""
        try:
            persisted = self.prepare(event)
        except Exception:
            logger.warning("Audit event %r could not be serialized", event.event, exc_info=True)
            return {}
        if persisted.get("redacted"):
            logger.info("Audit event %r redacted before persistence", persisted.get("event"))

        self._write_jsonl(persisted)
        if self._engine is not None:
            self._write_table(persisted)
        return persisted

    async def log(self, event: AuditEvent) -> None:
        self.record(event)

    def emit(self, event: AuditEvent) -> None:
        """Fire-and-forget write.

        Inside a running loop the write is scheduled as a task so the caller
        never waits on a sink; outside one it is written inline.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.record(event)
            return
        task = loop.create_task(self.log(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every write scheduled by emit()."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _write_jsonl(self, record: Dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.warning("Audit JSONL write failed (%s): %s", self._path, exc)

    def _write_table(self, record: Dict[str, Any]) -> None:
        try:
            table = audit_table(self._table_name)
            if not self._table_ready:
                table.create(self._engine, checkfirst=True)
                self._table_ready = True
            with self._engine.begin() as conn:
                conn.execute(
                    table.insert().values(
                        ts=record.get("ts"),
                        event=record.get("event"),
                        actor=record.get("actor"),
                        channel=record.get("channel"),
                        classification=record.get("classification"),
                        redacted=bool(record.get("redacted", False)),
                        details=record.get("details"),
                    )
                )
        except Exception as exc:
            logger.warning("Audit table write failed (%s): %s", self._table_name, exc)

    # ── Read path ──

    async def search(self, query: str, limit: int = 50) -> List[AuditEvent]:
        """Return up to *limit* events containing *query*, newest first."""
        if limit <= 0:
            return []
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Audit JSONL read failed (%s): %s", self._path, exc)
            return []

        found: List[AuditEvent] = []
        for line in reversed(content.splitlines()):
            if not line or query not in line:
                continue
            try:
                found.append(AuditEvent.model_validate_json(line))
            except ValidationError:
                logger.debug("Skipping malformed audit line: %.80s", line)
                continue
            if len(found) >= limit:
                break
        return found

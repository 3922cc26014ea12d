from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import hashlib

from loguru import logger

from exporter import ExportContext, ExportError, HtmlTableExporter, TextTransformer
from observability import ObservabilityStore


def _sha256_hex(text: str) -> str:
	h = hashlib.sha256()
	h.update((text or "").encode("utf-8"))
	return h.hexdigest()


def safe_slug(value: str) -> str:
	raw = "".join(ch if ch.isalnum() or ch in ("-", "_") else "_" for ch in (value or "").strip().lower())
	raw = raw.strip("_")
	return raw or "course"


def export_filename(context: ExportContext, extension: str, *, now: Optional[datetime] = None) -> str:
	ts = (now or datetime.now(tz=timezone.utc)).strftime("%Y%m%d-%H%M")
	return f"questions-{safe_slug(context.course_name)}-{ts}{extension}"


@dataclass
class ExportRunResult:
	status: str
	course: str
	filename: str
	mime_type: str
	html: str
	source_hash: str
	counts: Dict[str, int]


def run_export(
	*,
	content: str,
	context: ExportContext,
	exporter: Optional[TextTransformer] = None,
	store: Optional[ObservabilityStore] = None,
	record_events: bool = True,
) -> ExportRunResult:
	if content is None:
		raise ValueError("content is required")
	if not isinstance(content, str):
		raise ValueError("content must be text")

	exp = exporter or HtmlTableExporter(context)
	course = safe_slug(context.course_name)
	source_hash = _sha256_hex(content)
	events = (store or ObservabilityStore()) if record_events else None

	try:
		html = exp.presave(content)
	except ExportError as exc:
		logger.error("export of course '{}' failed: {}", context.course_name, exc)
		if events is not None:
			events.record_event(
				course=course,
				event="export_run",
				status="error",
				level="ERROR",
				source_hash=source_hash,
				error_key=exc.key,
				error=str(exc),
			)
		raise

	segmentation = getattr(exp, "last_result", None)
	counts: Dict[str, int] = {
		"blocks": getattr(segmentation, "blocks", 0),
		"payloads": getattr(segmentation, "payloads", 0),
		"mismatches": getattr(segmentation, "mismatches", 0),
		"input_chars": len(content),
		"output_chars": len(html),
	}
	if events is not None:
		fields: Dict[str, Any] = {"source_hash": source_hash, "counts": counts}
		if counts["mismatches"]:
			fields["level"] = "WARNING"
		events.record_event(course=course, event="export_run", status="success", **fields)

	return ExportRunResult(
		status="ok",
		course=course,
		filename=export_filename(context, exp.extension_label()),
		mime_type=exp.mime_type(),
		html=html,
		source_hash=source_hash,
		counts=counts,
	)

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from env import configure_logging
from exporter import ExportContext, ExportError, HtmlTableExporter
from observability import ObservabilityStore
from pipeline import run_export
from sanitizer import SanitizerOptions, sanitize, select_strategy
from segmenter import clean_document


configure_logging()

app = FastAPI(title="Question HTML Table Export Service")
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_methods=["*"],
	allow_headers=["*"],
)


class CleaningOverrides(BaseModel):
	repair_tool: Optional[bool] = None
	numeric_entities: Optional[bool] = None
	allow_table_tags: Optional[bool] = None
	allow_paragraph: Optional[bool] = None

	def sanitizer_options(self) -> SanitizerOptions:
		opts = SanitizerOptions.from_env()
		changes: Dict[str, bool] = {}
		if self.repair_tool is not None:
			changes["repair_tool"] = self.repair_tool
		if self.numeric_entities is not None:
			changes["normalize_entities"] = self.numeric_entities
		if self.allow_table_tags is not None:
			changes["allow_table_tags"] = self.allow_table_tags
		if self.allow_paragraph is not None:
			changes["allow_paragraph"] = self.allow_paragraph
		return replace(opts, **changes) if changes else opts


class ExportRequest(CleaningOverrides):
	content: str
	course_name: str = ""
	language: str = "en"
	country: str = ""
	text_direction: Literal["ltr", "rtl"] = "ltr"
	release: str = ""
	category_passthrough: Optional[bool] = None
	format: Literal["html", "json"] = "html"


class ExportResponse(BaseModel):
	status: str
	course: str
	filename: str
	mime_type: str
	html: str
	source_hash: str
	counts: Dict[str, int]


class SanitizeRequest(CleaningOverrides):
	payload: str


class SanitizeResponse(BaseModel):
	strategy: str
	payload: str


class SegmentRequest(CleaningOverrides):
	document: str
	category_passthrough: Optional[bool] = None


class SegmentResponse(BaseModel):
	success: bool
	document: str
	counts: Dict[str, int] = Field(default_factory=dict)


@app.post("/export")
def export(req: ExportRequest) -> Any:
	context = ExportContext(
		course_name=req.course_name,
		locale_language=req.language,
		locale_country=req.country,
		text_direction=req.text_direction,
		release_version=req.release,
	)
	exporter = HtmlTableExporter(
		context,
		options=req.sanitizer_options(),
		special_case_category=req.category_passthrough,
	)
	try:
		result = run_export(content=req.content, context=context, exporter=exporter)
	except ExportError as exc:
		raise HTTPException(status_code=422, detail={"key": exc.key, "message": str(exc)}) from exc
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	if req.format == "json":
		return ExportResponse(**result.__dict__)
	return HTMLResponse(
		content=result.html,
		headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
	)


@app.post("/sanitize", response_model=SanitizeResponse)
def sanitize_payload(req: SanitizeRequest) -> SanitizeResponse:
	strategy = select_strategy(req.sanitizer_options())
	return SanitizeResponse(strategy=strategy.name, payload=sanitize(req.payload, strategy=strategy))


@app.post("/segment", response_model=SegmentResponse)
def segment_document(req: SegmentRequest) -> SegmentResponse:
	strategy = select_strategy(req.sanitizer_options())
	result = clean_document(
		req.document,
		lambda payload: sanitize(payload, strategy=strategy),
		special_case_category=req.category_passthrough,
	)
	return SegmentResponse(
		success=result.success,
		document=result.text,
		counts={"blocks": result.blocks, "payloads": result.payloads, "mismatches": result.mismatches},
	)


@app.get("/exports/{course}/events")
def export_events(course: str, limit: int = 100, status: Optional[str] = None) -> Dict[str, Any]:
	store = ObservabilityStore()
	return {"course": course, "events": store.list_events(course=course, limit=limit, status=status)}


@app.get("/exports/{course}/metrics")
def export_metrics(course: str, hours: int = 24) -> Dict[str, Any]:
	store = ObservabilityStore()
	return store.summarize(course=course, hours=hours)

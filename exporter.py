"""HTML review table exporter.

Converts question XML into a single XHTML review document:

1. payloads are sanitized in place (segmenter + sanitizer);
2. the questions, the localized labels and the question type icons are
   written to a temp file and run through XSLT pass 1 (question XML ->
   XHTML, payload markup emitted verbatim);
3. the pass 1 output and the HTML template are written back to the temp
   file and run through XSLT pass 2 (template embedding, embedded file
   references -> data URIs).

Temp files are removed after each pass unless debug mode is on, so the
intermediate XML can be inspected.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol
import os
import re
import tempfile

from loguru import logger

from env import get_category_passthrough, get_debug_mode, get_resources_dir, get_temp_root
from labels import PLUGIN_NAMESPACE, BundledLabelResolver, LabelResolver, build_labels_xml
from sanitizer import SanitizerOptions, make_sanitizer
from segmenter import SegmentationResult, clean_document
from transform import TransformationError, XsltTransformer

_RE_XML_DECL = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
_RE_QUIZ_WRAPPER = re.compile(r"^\s*<quiz\b[^>]*>([\s\S]*)</quiz>\s*$")


class TextTransformer(Protocol):
	def extension_label(self) -> str:
		...

	def mime_type(self) -> str:
		...

	def presave(self, content: str) -> str:
		...


@dataclass(frozen=True)
class ExportContext:
	course_name: str = ""
	locale_language: str = "en"
	locale_country: str = ""
	text_direction: str = "ltr"
	release_version: str = ""

	def xslt_parameters(self) -> Dict[str, str]:
		return {
			"course_name": self.course_name,
			"moodle_language": self.locale_language,
			"moodle_country": self.locale_country,
			"moodle_textdirection": self.text_direction,
			"moodle_release": self.release_version,
		}


class ExportError(RuntimeError):
	"""Export failed; the message is the localized host string for `key`."""

	def __init__(self, key: str, message: str, *, detail: str = "") -> None:
		super().__init__(message)
		self.key = key
		self.detail = detail


def strip_quiz_wrapper(content: str) -> str:
	"""Accept a complete question XML document as well as a bare question list."""
	text = _RE_XML_DECL.sub("", content, count=1)
	m = _RE_QUIZ_WRAPPER.match(text)
	return m.group(1) if m else text


def _read_resource(path: Path) -> str:
	return _RE_XML_DECL.sub("", path.read_text(encoding="utf-8"), count=1)


class HtmlTableExporter:
	question_icons = "qtype_icons_base64.xml"
	htmlfile_template = "htmlfile_template.html"
	stylesheet_pass1 = "mqxml2html_pass1.xsl"
	stylesheet_pass2 = "mqxml2html_pass2.xsl"

	def __init__(
		self,
		context: Optional[ExportContext] = None,
		*,
		resolver: Optional[LabelResolver] = None,
		options: Optional[SanitizerOptions] = None,
		special_case_category: Optional[bool] = None,
		resources_dir: Optional[Path] = None,
		temp_dir: Optional[Path] = None,
		debug: Optional[bool] = None,
	) -> None:
		self.context = context or ExportContext()
		self.resolver = resolver or BundledLabelResolver(self.context.locale_language)
		self.options = options or SanitizerOptions.from_env()
		self.special_case_category = get_category_passthrough() if special_case_category is None else special_case_category
		self.resources_dir = Path(resources_dir) if resources_dir is not None else get_resources_dir()
		self.temp_dir = Path(temp_dir) if temp_dir is not None else get_temp_root()
		self.debug = get_debug_mode() if debug is None else debug
		self.last_result: Optional[SegmentationResult] = None

	def extension_label(self) -> str:
		return ".htm"

	def mime_type(self) -> str:
		return "text/html"

	def provides_import(self) -> bool:
		return False

	def _fail(self, key: str, a: str = "") -> ExportError:
		message = self.resolver.resolve(key, PLUGIN_NAMESPACE, a)
		logger.error("presave(): {}", message)
		return ExportError(key, message, detail=a)

	def presave(self, content: str) -> str:
		logger.debug("presave(content = {})", (content or "")[80:130].replace("\n", " "))

		stylesheet1 = self.resources_dir / self.stylesheet_pass1
		stylesheet2 = self.resources_dir / self.stylesheet_pass2
		template = self.resources_dir / self.htmlfile_template
		icons = self.resources_dir / self.question_icons
		for stylesheet in (stylesheet1, stylesheet2):
			if not stylesheet.exists():
				raise self._fail("stylesheetunavailable", str(stylesheet))
		if not template.exists():
			raise self._fail("templateunavailable", str(template))

		result = clean_document(
			strip_quiz_wrapper(content or ""),
			make_sanitizer(self.options),
			special_case_category=self.special_case_category,
		)
		self.last_result = result
		if not result.success:
			raise self._fail("noquestions")
		logger.debug(
			"presave(): {} question blocks, {} payloads cleaned, {} left as-is",
			result.blocks, result.payloads, result.mismatches,
		)

		icons_xml = _read_resource(icons) if icons.exists() else ""
		with self._scoped_temp_file() as temp_path:
			self._write(temp_path, "<container><quiz>" + result.text + "</quiz>" + build_labels_xml(self.resolver) + icons_xml + "</container>")
			logger.debug("presave(): XML data saved to {}", temp_path)
			xhtml = self._transform(stylesheet1, temp_path, "XML")
			logger.debug("presave(): pass 1 succeeded, XHTML output fragment = {}", xhtml[1:200].replace("\n", ""))

			self._write(temp_path, "<container>" + xhtml + "<htmltemplate>" + _read_resource(template) + "</htmltemplate></container>")
			logger.debug("presave(): intermediate XHTML data saved to {}", temp_path)
			html = self._transform(stylesheet2, temp_path, "XHTML")
			logger.debug("presave(): pass 2 succeeded, HTML output fragment = {}", html[400:500].replace("\n", ""))
		return html

	def _transform(self, stylesheet: Path, xml_path: Path, kind: str) -> str:
		logger.debug("presave(): calling XSLT with stylesheet \"{}\"", stylesheet)
		try:
			return XsltTransformer(stylesheet).apply(xml_path, self.context.xslt_parameters())
		except TransformationError as exc:
			if exc.log:
				logger.debug("XSLT error log: {}", exc.log)
			raise self._fail("transformationfailed", f"XSLT: {stylesheet}; {kind}: {xml_path}") from exc

	def _write(self, path: Path, text: str) -> None:
		nbytes = 0
		try:
			nbytes = path.write_text(text, encoding="utf-8")
		except OSError as exc:
			raise self._fail("cannotwritetotempfile", f"{path}({nbytes})") from exc
		if nbytes == 0:
			raise self._fail("cannotwritetotempfile", f"{path}({nbytes})")

	@contextmanager
	def _scoped_temp_file(self) -> Iterator[Path]:
		try:
			self.temp_dir.mkdir(parents=True, exist_ok=True)
			fd, name = tempfile.mkstemp(prefix="q2h-", suffix=".xml", dir=str(self.temp_dir))
		except OSError as exc:
			raise self._fail("cannotopentempfile", str(self.temp_dir)) from exc
		os.close(fd)
		path = Path(name)
		try:
			yield path
		finally:
			self._debug_unlink(path)

	def _debug_unlink(self, path: Path) -> None:
		logger.debug("debug_unlink(\"{}\")", path)
		if not self.debug:
			path.unlink(missing_ok=True)

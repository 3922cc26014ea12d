"""XSLT engine adapter (lxml/libxslt)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from lxml import etree

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


class TransformationError(RuntimeError):
	def __init__(self, message: str, *, log: Optional[str] = None) -> None:
		super().__init__(message)
		self.log = log or ""


class XsltTransformer:
	def __init__(self, stylesheet_path: Path) -> None:
		self.stylesheet_path = Path(stylesheet_path)
		try:
			self._xslt = etree.XSLT(etree.parse(str(self.stylesheet_path), _PARSER))
		except (OSError, etree.XMLSyntaxError, etree.XSLTParseError) as exc:
			raise TransformationError(f"cannot load stylesheet {self.stylesheet_path}: {exc}") from exc

	def apply(self, xml_path: Path, parameters: Optional[Dict[str, Any]] = None) -> str:
		try:
			doc = etree.parse(str(xml_path), _PARSER)
		except (OSError, etree.XMLSyntaxError) as exc:
			raise TransformationError(f"cannot parse {xml_path}: {exc}", log=str(getattr(exc, "error_log", ""))) from exc
		params = {name: etree.XSLT.strparam(str(value)) for name, value in (parameters or {}).items()}
		try:
			result = self._xslt(doc, **params)
		except etree.XSLTApplyError as exc:
			raise TransformationError(f"{self.stylesheet_path.name}: {exc}", log=str(self._xslt.error_log)) from exc
		output = str(result)
		if not output.strip():
			raise TransformationError(f"{self.stylesheet_path.name}: empty output", log=str(self._xslt.error_log))
		return output

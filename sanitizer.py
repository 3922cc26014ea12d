"""Payload sanitizer.

Cleans the raw markup held in one literal-text payload so it can be emitted
verbatim inside the generated XHTML. Two strategies exist:

- RepairToolStrategy: BeautifulSoup based repair (drop Office artifacts,
  presentational -> structural markup, body content only, well-formed output).
- TagStripStrategy: allow-list tag stripper. Stray "<" and "&" are escaped,
  kept tags are balanced and void tags self-closed.

Every result then goes through the same post-steps: img attribute artifact
removal, numeric entities (tag stripper only), @@PLUGINFILE@@ filename
decoding and soft-hyphen removal.

Functions:
- sanitize(payload: str, options=None, strategy=None) -> str
- make_sanitizer(options=None) -> Callable[[str], str]
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Protocol
from urllib.parse import unquote
from xml.sax.saxutils import escape, unescape
import re

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction, Tag
from loguru import logger

from entities import ENTITY_TABLE, PRESERVED_ENTITIES, normalize_entities
from env import (
	get_allow_paragraph,
	get_allow_table_tags,
	get_numeric_entities,
	get_repair_tool_enabled,
)

INLINE_TAGS = frozenset({"b", "i", "u", "em", "strong", "sub", "sup", "img", "br"})
TABLE_TAGS = frozenset({"table", "thead", "tbody", "tfoot", "tr", "th", "td", "caption", "col", "colgroup"})
PARAGRAPH_TAGS = frozenset({"p"})

PLUGINFILE_TOKEN = "@@PLUGINFILE@@/"
SOFT_HYPHEN = "\u00ad"


@dataclass(frozen=True)
class SanitizerOptions:
	repair_tool: bool = True
	normalize_entities: bool = True
	allow_table_tags: bool = True
	allow_paragraph: bool = True

	@classmethod
	def from_env(cls) -> "SanitizerOptions":
		return cls(
			repair_tool=get_repair_tool_enabled(),
			normalize_entities=get_numeric_entities(),
			allow_table_tags=get_allow_table_tags(),
			allow_paragraph=get_allow_paragraph(),
		)

	def allowed_tags(self) -> FrozenSet[str]:
		tags = set(INLINE_TAGS)
		if self.allow_table_tags:
			tags |= TABLE_TAGS
		if self.allow_paragraph:
			tags |= PARAGRAPH_TAGS
		return frozenset(tags)


class SanitizeStrategy(Protocol):
	name: str
	normalizes_entities: bool

	def clean(self, payload: str) -> str:
		...


# ---------------------------------------------------------------------------
# Strategy A: markup repair tool
# ---------------------------------------------------------------------------

# Removed together with their content
_DROPPED_ELEMENTS = frozenset({"head", "style", "script", "meta", "link", "xml", "title", "o:p"})
# Removed, content kept
_UNWRAPPED_ELEMENTS = frozenset({"html", "body", "font", "basefont"})
_RENAMED_ELEMENTS = {"b": "strong", "i": "em", "center": "div"}


def _is_dropped(tag: Tag) -> bool:
	return tag.name in _DROPPED_ELEMENTS


def _strip_office_attributes(tag: Tag) -> None:
	for attr in list(tag.attrs):
		if attr == "lang" or ":" in attr:
			del tag[attr]
	if tag.name == "img" and tag.get("complete") == "true":
		del tag["complete"]
	classes = tag.get("class")
	if classes:
		if isinstance(classes, str):
			classes = classes.split()
		kept = [c for c in classes if not c.startswith("Mso")]
		if kept:
			tag["class"] = kept
		else:
			del tag["class"]
	style = tag.get("style")
	if style and "mso-" in style.lower():
		decls = [d.strip() for d in style.split(";")]
		kept_decls = [d for d in decls if d and not d.lower().startswith("mso-")]
		if kept_decls:
			tag["style"] = "; ".join(kept_decls)
		else:
			del tag["style"]


class RepairToolStrategy:
	name = "repair"
	normalizes_entities = False

	def clean(self, payload: str) -> str:
		soup = BeautifulSoup(payload, "html.parser")
		for node in soup.find_all(string=lambda s: isinstance(s, (Comment, Declaration, Doctype, ProcessingInstruction))):
			node.extract()
		for tag in soup.find_all(_is_dropped):
			tag.decompose()
		for tag in soup.find_all(True):
			name = tag.name
			if name in _UNWRAPPED_ELEMENTS or ":" in name:
				tag.unwrap()
				continue
			if name in _RENAMED_ELEMENTS:
				tag.name = _RENAMED_ELEMENTS[name]
				if name == "center":
					tag["style"] = "text-align: center"
			_strip_office_attributes(tag)
		return soup.decode(formatter="minimal")


# ---------------------------------------------------------------------------
# Strategy B: allow-list tag stripper
# ---------------------------------------------------------------------------

# Quoted values and bare attribute text both stop at "<", so every scan ends
# at the next tag opener and matching stays linear on unterminated tags.
_ATTRS = r"""(?:"[^"<]*"|'[^'<]*'|[^'"<>])*"""

_RE_DECLARATION = re.compile(r"<[!?][^<>]*>")
_RE_TAG = re.compile(r"<(/?)([A-Za-z][\w:.-]*)(?=[\s/>])(" + _ATTRS + r")>")
_RE_ATTR = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s"'<>]+))?""")
_RE_XML_NAME = re.compile(r"[A-Za-z_][\w.-]*")
_RE_AMPERSAND = re.compile(r"&(?:#([0-9]{1,7});|#[xX]([0-9A-Fa-f]{1,6});|([A-Za-z][A-Za-z0-9]*);)?")

VOID_TAGS = frozenset({"img", "br", "col"})


def _drop_comments(text: str) -> str:
	parts = []
	pos = 0
	while True:
		start = text.find("<!--", pos)
		if start < 0:
			break
		end = text.find("-->", start + 4)
		if end < 0:
			break
		parts.append(text[pos:start])
		pos = end + 3
	parts.append(text[pos:])
	return "".join(parts)


def _is_xml_char(codepoint: int) -> bool:
	return (
		codepoint in (0x9, 0xA, 0xD)
		or 0x20 <= codepoint <= 0xD7FF
		or 0xE000 <= codepoint <= 0xFFFD
		or 0x10000 <= codepoint <= 0x10FFFF
	)


def _keep_or_escape_reference(match: re.Match) -> str:
	decimal, hexadecimal, name = match.groups()
	if decimal is not None:
		valid = _is_xml_char(int(decimal))
	elif hexadecimal is not None:
		valid = _is_xml_char(int(hexadecimal, 16))
	elif name is not None:
		valid = name in PRESERVED_ENTITIES or name in ENTITY_TABLE
	else:
		valid = False
	if valid:
		return match.group(0)
	return "&amp;" + match.group(0)[1:]


def _escape_ampersands(text: str) -> str:
	if "&" not in text:
		return text
	return _RE_AMPERSAND.sub(_keep_or_escape_reference, text)


def _escape_text(text: str) -> str:
	return _escape_ampersands(text).replace("<", "&lt;")


def _rebuild_attributes(raw: str) -> str:
	"""Re-emit attributes as name="value" pairs, keeping the first of duplicates."""
	parts = []
	seen = set()
	pos = 0
	for match in _RE_ATTR.finditer(raw):
		gap = raw[pos:match.start()]
		pos = match.end()
		name, value = match.groups()
		if not _RE_XML_NAME.fullmatch(name) or name.lower() in seen:
			continue
		seen.add(name.lower())
		if value is None:
			value = name
		elif value[0] in "\"'":
			value = value[1:-1]
		value = _escape_ampersands(value).replace("<", "&lt;").replace('"', "&quot;")
		parts.append(f'{gap if gap.isspace() else " "}{name}="{value}"')
	return "".join(parts)


class TagStripStrategy:
	name = "strip"

	def __init__(self, allowed_tags: FrozenSet[str], *, numeric_entities: bool = True) -> None:
		self.allowed_tags = allowed_tags
		self.normalizes_entities = numeric_entities

	def clean(self, payload: str) -> str:
		text = _RE_DECLARATION.sub("", _drop_comments(payload))
		parts = []
		open_tags = []
		open_counts = Counter()
		pos = 0
		for match in _RE_TAG.finditer(text):
			parts.append(_escape_text(text[pos:match.start()]))
			pos = match.end()
			closing, name, raw = match.group(1), match.group(2).lower(), match.group(3)
			if name not in self.allowed_tags:
				continue
			if name in VOID_TAGS:
				# </br> is a line break; other void closers are noise.
				if not closing or name == "br":
					attrs = "" if closing else _rebuild_attributes(raw)
					parts.append(f"<{name}{attrs}/>")
			elif closing:
				if open_counts[name]:
					while True:
						top = open_tags.pop()
						open_counts[top] -= 1
						parts.append(f"</{top}>")
						if top == name:
							break
			elif raw.rstrip().endswith("/"):
				parts.append(f"<{name}{_rebuild_attributes(raw)}/>")
			else:
				open_tags.append(name)
				open_counts[name] += 1
				parts.append(f"<{name}{_rebuild_attributes(raw)}>")
		parts.append(_escape_text(text[pos:]))
		parts.extend(f"</{name}>" for name in reversed(open_tags))
		return "".join(parts)


# ---------------------------------------------------------------------------
# Post-steps shared by both strategies
# ---------------------------------------------------------------------------

_RE_IMG_TAG = re.compile(r"<img\b(" + _ATTRS + r")>", re.IGNORECASE)
_QUOT_ESCAPE = {'"': "&quot;"}
_QUOT_UNESCAPE = {"&quot;": '"'}


def _rewrite_img_attributes(
	text: str,
	rewrite: Callable[[re.Match], str],
	finish: Callable[[str], str] = lambda tag: tag,
) -> str:
	def _one(match: re.Match) -> str:
		raw = match.group(1)
		rewritten = _RE_ATTR.sub(rewrite, raw)
		if rewritten == raw:
			return match.group(0)
		return finish(match.group(0)[:4] + rewritten + ">")

	return _RE_IMG_TAG.sub(_one, text)


def _drop_artifact(match: re.Match) -> str:
	if match.group(1).lower() == "complete" and match.group(2) == '"true"':
		return ""
	return match.group(0)


def _trim_before_close(tag: str) -> str:
	body = tag[:-1].rstrip()
	if body.endswith("/"):
		return body[:-1].rstrip() + "/>"
	return body + ">"


def remove_attribute_artifacts(text: str) -> str:
	"""Drop the complete="true" attribute some editors leave on img tags."""
	if "complete=" not in text:
		return text
	return _rewrite_img_attributes(text, _drop_artifact, _trim_before_close)


def _decode_filename(match: re.Match) -> str:
	name, value = match.groups()
	prefix = '"' + PLUGINFILE_TOKEN
	if name.lower() != "src" or not value or not value.startswith(prefix) or not value.endswith('"'):
		return match.group(0)
	decoded = unquote(unescape(value[len(prefix):-1], _QUOT_UNESCAPE))
	head = match.group(0)[:match.start(2) - match.start(0)]
	return head + prefix + escape(decoded, _QUOT_ESCAPE) + '"'


def decode_file_references(text: str) -> str:
	if PLUGINFILE_TOKEN not in text:
		return text
	return _rewrite_img_attributes(text, _decode_filename)


def strip_soft_hyphens(text: str) -> str:
	return text.replace(SOFT_HYPHEN, "")


def markup_repair_tool_available(options: SanitizerOptions) -> bool:
	return options.repair_tool


def select_strategy(options: Optional[SanitizerOptions] = None) -> SanitizeStrategy:
	opts = options or SanitizerOptions.from_env()
	if markup_repair_tool_available(opts):
		return RepairToolStrategy()
	return TagStripStrategy(opts.allowed_tags(), numeric_entities=opts.normalize_entities)


def sanitize(
	payload: str,
	options: Optional[SanitizerOptions] = None,
	strategy: Optional[SanitizeStrategy] = None,
) -> str:
	if not payload:
		return payload or ""
	strat = strategy or select_strategy(options)
	try:
		text = strat.clean(payload)
	except Exception as exc:
		logger.warning("sanitize: {} strategy failed, payload left as-is: {}", strat.name, exc)
		text = payload
	text = remove_attribute_artifacts(text)
	if strat.normalizes_entities:
		text = normalize_entities(text)
	text = decode_file_references(text)
	return strip_soft_hyphens(text)


def make_sanitizer(options: Optional[SanitizerOptions] = None) -> Callable[[str], str]:
	"""Pick the strategy once and return a payload -> cleaned payload callable."""
	strat = select_strategy(options)
	logger.debug("sanitizer strategy: {}", strat.name)

	def _clean(payload: str) -> str:
		return sanitize(payload, strategy=strat)

	return _clean

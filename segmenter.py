"""Question block / literal-text payload segmentation.

Locates every ``<question type="...">`` block in question XML and every
``<![CDATA[ ... ]]>`` payload inside it without using an XML parser: the
payloads routinely hold markup that a strict parser would reject. Cleaned
payloads are substituted back in place; every other byte of the document is
preserved.

Offsets in Block are character offsets into the document; offsets in
Payload are relative to the block body.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple
import re

from loguru import logger

from env import get_category_passthrough
from sanitizer import make_sanitizer

BLOCK_OPEN = "<question"
BLOCK_CLOSE = "</question>"
PAYLOAD_START = "<![CDATA["
PAYLOAD_END = "]]>"
CATEGORY_TYPE = "category"

_RE_BLOCK_OPEN_TAG = re.compile(r'<question\s+type="([^"]*)"\s*>')


class StructuralMismatch(ValueError):
	"""Block or payload markers could not be matched consistently."""


class _ScanState(Enum):
	IN_BLOCK = "in_block"
	IN_PAYLOAD = "in_payload"
	AFTER_PAYLOAD = "after_payload"


@dataclass(frozen=True)
class Block:
	type: str
	start: int
	end: int
	open_tag: str
	body: str

	@property
	def text(self) -> str:
		return self.open_tag + self.body + BLOCK_CLOSE


@dataclass(frozen=True)
class Payload:
	prefix: str
	text: str
	start: int
	end: int


@dataclass(frozen=True)
class Fragment:
	prefix: str
	payload: str


@dataclass
class SegmentationResult:
	text: str
	success: bool
	blocks: int = 0
	payloads: int = 0
	mismatches: int = 0
	block_types: List[str] = field(default_factory=list)


def segment(document: str) -> Tuple[List[Block], Optional[int]]:
	"""Return the question blocks in document order.

	The second item is the offset of an opening tag that has no closing tag,
	or None. Scanning stops there; the caller passes the rest through.
	"""
	blocks: List[Block] = []
	pos = 0
	while True:
		i = document.find(BLOCK_OPEN, pos)
		if i < 0:
			return blocks, None
		m = _RE_BLOCK_OPEN_TAG.match(document, i)
		if m is None:
			pos = i + len(BLOCK_OPEN)
			continue
		close = document.find(BLOCK_CLOSE, m.end())
		if close < 0:
			return blocks, i
		blocks.append(Block(
			type=m.group(1),
			start=i,
			end=close + len(BLOCK_CLOSE),
			open_tag=m.group(0),
			body=document[m.end():close],
		))
		pos = close + len(BLOCK_CLOSE)


def find_payloads(body: str) -> Tuple[List[Payload], str]:
	"""Split a block body into payloads plus the trailing text.

	The final payload always ends at the rightmost end marker in the body,
	so a stray ``]]>`` after the last start marker stays inside it.
	Raises StructuralMismatch for unterminated or nested payloads.
	"""
	payloads: List[Payload] = []
	state = _ScanState.IN_BLOCK
	pos = 0
	mark = 0
	prefix = ""
	while True:
		if state is _ScanState.IN_PAYLOAD:
			e = body.find(PAYLOAD_END, pos)
			if e < 0:
				raise StructuralMismatch(f"payload at offset {pos} has no end marker")
			payloads.append(Payload(prefix=prefix, text=body[pos:e], start=pos, end=e))
			pos = mark = e + len(PAYLOAD_END)
			state = _ScanState.AFTER_PAYLOAD
			continue
		s = body.find(PAYLOAD_START, pos)
		if s < 0:
			break
		prefix = body[mark:s]
		pos = s + len(PAYLOAD_START)
		state = _ScanState.IN_PAYLOAD

	if not payloads:
		return [], body

	last_end = body.rfind(PAYLOAD_END)
	last = payloads[-1]
	if last_end > last.end:
		payloads[-1] = replace(last, text=body[last.start:last_end], end=last_end)
	for p in payloads:
		if PAYLOAD_START in p.text:
			raise StructuralMismatch(f"nested payload start marker at offset {p.start}")
	return payloads, body[last_end + len(PAYLOAD_END):]


def _wrap_payload(cleaned: str) -> str:
	# "]]>" inside a payload would terminate the section early
	return PAYLOAD_START + cleaned.replace(PAYLOAD_END, "]]]]><![CDATA[>") + PAYLOAD_END


def clean_document(
	document: str,
	clean: Callable[[str], str],
	*,
	special_case_category: Optional[bool] = None,
) -> SegmentationResult:
	if not document:
		return SegmentationResult(text=document or "", success=False)
	if special_case_category is None:
		special_case_category = get_category_passthrough()

	blocks, unmatched_at = segment(document)
	result = SegmentationResult(text=document, success=bool(blocks), blocks=len(blocks))
	if unmatched_at is not None:
		result.mismatches += 1
		logger.warning("question block at offset {} has no closing tag; rest of document left as-is", unmatched_at)
	if not blocks:
		logger.debug("segment_and_clean(): no question blocks found")
		return result

	out: List[str] = []
	pos = 0
	for block in blocks:
		out.append(document[pos:block.start])
		pos = block.end
		result.block_types.append(block.type)
		if special_case_category and block.type == CATEGORY_TYPE:
			out.append(block.text)
			continue
		try:
			payloads, trailing = find_payloads(block.body)
		except StructuralMismatch as exc:
			result.mismatches += 1
			logger.warning("question block at offset {} left as-is: {}", block.start, exc)
			out.append(block.text)
			continue
		if not payloads:
			out.append(block.text)
			continue
		fragments = [Fragment(prefix=p.prefix, payload=clean(p.text)) for p in payloads]
		result.payloads += len(fragments)
		out.append(block.open_tag)
		out.extend(f.prefix + _wrap_payload(f.payload) for f in fragments)
		out.append(trailing)
		out.append(BLOCK_CLOSE)
	out.append(document[pos:])
	result.text = "".join(out)
	return result


def segment_and_clean(
	document: str,
	clean: Optional[Callable[[str], str]] = None,
	*,
	special_case_category: Optional[bool] = None,
) -> Tuple[str, bool]:
	"""Sanitize every payload of every question block.

	Returns the cleaned document and False when there were no question
	blocks (the document is then returned unchanged).
	"""
	if clean is None:
		clean = make_sanitizer()
	result = clean_document(document, clean, special_case_category=special_case_category)
	return result.text, result.success

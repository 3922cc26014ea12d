"""Named character entity normalization.

Transformation targets that are not UTF-8 safe (and XML parsers in general)
only know the five predefined XML entities. Everything else coming out of
HTML editors (``&alpha;``, ``&nbsp;``, ``&rsquo;``...) is rewritten to the
equivalent numeric character reference.

Functions:
- normalize_entities(text: str) -> str
"""
from __future__ import annotations

from html.entities import name2codepoint
from typing import Dict
import re

# Left as-is: rewriting them would double-escape markup-significant characters.
PRESERVED_ENTITIES = frozenset({"amp", "quot", "apos", "lt", "gt"})

# HTML 4 entity set: Latin-1, Greek, math symbols, typographic punctuation.
ENTITY_TABLE: Dict[str, int] = {
	name: codepoint
	for name, codepoint in name2codepoint.items()
	if name not in PRESERVED_ENTITIES
}

_RE_NAMED_ENTITY = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")


def _to_numeric(match: re.Match) -> str:
	codepoint = ENTITY_TABLE.get(match.group(1))
	if codepoint is None:
		return match.group(0)
	return f"&#{codepoint};"


def normalize_entities(text: str) -> str:
	if not text or "&" not in text:
		return text
	return _RE_NAMED_ENTITY.sub(_to_numeric, text)

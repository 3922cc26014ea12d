"""Localized text labels for the HTML review table.

The stylesheets never look strings up themselves; every label they need is
resolved up front and appended to the XML handed to pass 1 as

	<moodlelabels><data name="NAMESPACE_KEY"><value>TEXT</value></data>...</moodlelabels>
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from xml.sax.saxutils import escape, quoteattr
import json
import re

from loguru import logger

from env import get_resources_dir

PLUGIN_NAMESPACE = "qformat_htmltable"
DEFAULT_LANGUAGE = "en"

_RE_LANGUAGE = re.compile(r"[A-Za-z_-]+")

LABEL_KEYS: Dict[str, tuple] = {
	"assignment": ("uploaderror", "uploadafile", "uploadfiletoobig"),
	"grades": ("item",),
	"moodle": ("categoryname", "no", "yes", "feedback", "format", "formathtml", "formatmarkdown", "formatplain", "formattext", "grade", "question", "tags", "uploadserverlimit", "uploadedfile"),
	"qtype_calculated": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "addmoreanswerblanks"),
	"qtype_description": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary"),
	"qtype_essay": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "allowattachments", "graderinfo", "formateditor", "formateditorfilepicker", "formatmonospaced", "formatplain", "responsefieldlines", "responseformat", "responsetemplate", "responsetemplate_help"),
	"qtype_match": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "blanksforxmorequestions", "filloutthreeqsandtwoas"),
	"qtype_multianswer": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary"),
	"qtype_multichoice": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "answerhowmany", "answernumbering", "answersingleno", "answersingleyes", "choiceno", "correctfeedback", "fillouttwochoices", "incorrectfeedback", "partiallycorrectfeedback", "shuffleanswers"),
	"qtype_shortanswer": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "addmoreanswerblanks", "casesensitive", "filloutoneanswer"),
	"qtype_truefalse": ("pluginname", "pluginnameadding", "pluginnameediting", "pluginnamesummary", "false", "true"),
	"question": ("addmorechoiceblanks", "category", "combinedfeedback", "correctfeedbackdefault", "defaultmark", "fillincorrect", "flagged", "flagthisquestion", "generalfeedback", "addanotherhint", "hintn", "hintnoptions", "hinttext", "clearwrongparts", "penaltyforeachincorrecttry", "incorrect", "incorrectfeedbackdefault", "partiallycorrect", "partiallycorrectfeedbackdefault", "questions", "questionx", "questioncategory", "questiontext", "specificfeedback", "shownumpartscorrect", "shownumpartscorrectwhenfinished"),
	"quiz": ("answer", "answers", "choice", "correct", "correctanswers", "defaultgrade", "generalfeedback", "feedback", "incorrect", "penaltyfactor", "shuffle"),
	"repository_upload": ("pluginname", "pluginname_help", "upload_error_no_file"),
}


class LabelResolver(Protocol):
	def resolve(self, key: str, namespace: str, a: Optional[Any] = None) -> str:
		...


def _load_strings(path: Path) -> Dict[str, Dict[str, str]]:
	if not path.exists():
		return {}
	raw = json.loads(path.read_text(encoding="utf-8"))
	if not isinstance(raw, dict):
		raise ValueError(f"{path}: expected an object of namespaces")
	return {str(ns): {str(k): str(v) for k, v in (strings or {}).items()} for ns, strings in raw.items()}


class BundledLabelResolver:
	"""Looks strings up in resources/lang/<language>.json, then English.

	Unknown strings resolve to ``[[key]]``.
	"""

	def __init__(self, language: str = DEFAULT_LANGUAGE, *, lang_dir: Optional[Path] = None) -> None:
		language = (language or "").strip()
		if not _RE_LANGUAGE.fullmatch(language):
			if language:
				logger.warning("ignoring invalid label language {!r}", language)
			language = DEFAULT_LANGUAGE
		self.language = language
		self.lang_dir = Path(lang_dir) if lang_dir is not None else get_resources_dir() / "lang"
		self._tables = [_load_strings(self.lang_dir / f"{self.language}.json")]
		if self.language != DEFAULT_LANGUAGE:
			if not self._tables[0]:
				logger.debug("no label strings for language '{}', using '{}'", self.language, DEFAULT_LANGUAGE)
			self._tables.append(_load_strings(self.lang_dir / f"{DEFAULT_LANGUAGE}.json"))

	def resolve(self, key: str, namespace: str, a: Optional[Any] = None) -> str:
		for table in self._tables:
			text = table.get(namespace, {}).get(key)
			if text is not None:
				if a is not None:
					text = text.replace("{$a}", str(a)).replace("$a", str(a))
				return text
		return f"[[{key}]]"


def build_labels_xml(resolver: LabelResolver) -> str:
	parts = ["<moodlelabels>\n"]
	for namespace, keys in LABEL_KEYS.items():
		for key in keys:
			name = f"{namespace}_{key}"
			value = escape(resolver.resolve(key, namespace))
			parts.append(f"<data name={quoteattr(name)}><value>{value}</value></data>\n")
	parts.append("</moodlelabels>")
	return "".join(parts)

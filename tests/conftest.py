import sys
from pathlib import Path

import pytest


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


REPO_ROOT = _ensure_app_on_path()

from sanitizer import SanitizerOptions  # noqa: E402


SHORTANSWER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<quiz>
<question type="category">
<category><text><![CDATA[$course$/Biology]]></text></category>
</question>
<question type="shortanswer">
<name><text>Cell organelle</text></name>
<questiontext format="html"><text><![CDATA[<p class="MsoNormal">Which organelle is shown? <img src="@@PLUGINFILE@@/cell%20diagram.png" alt="cell"></p>]]></text>
<file name="cell diagram.png" path="/" encoding="base64">iVBORw0KGgo=</file>
</questiontext>
<generalfeedback format="html"><text><![CDATA[<b>Mitochondria</b> produce energy.]]></text></generalfeedback>
<defaultgrade>1.0000000</defaultgrade>
<penalty>0.3333333</penalty>
<answer fraction="100" format="moodle_auto_format"><text>mitochondrion</text>
<feedback format="html"><text><![CDATA[Correct!]]></text></feedback>
</answer>
</question>
</quiz>
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point every data directory at the test's tmp_path and reset feature flags."""
    monkeypatch.setenv("HTMLTABLE_DATA_ROOT", str(tmp_path / "data"))
    for name in (
        "HTMLTABLE_TEMP_ROOT",
        "HTMLTABLE_OBSERVABILITY_ROOT",
        "HTMLTABLE_RESOURCES_DIR",
        "HTMLTABLE_DEBUG",
        "HTMLTABLE_LOG_LEVEL",
        "HTMLTABLE_REPAIR_TOOL",
        "HTMLTABLE_NUMERIC_ENTITIES",
        "HTMLTABLE_ALLOW_TABLE_TAGS",
        "HTMLTABLE_ALLOW_PARAGRAPH",
        "HTMLTABLE_CATEGORY_PASSTHROUGH",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def repair_options():
    return SanitizerOptions(repair_tool=True)


@pytest.fixture
def strip_options():
    return SanitizerOptions(repair_tool=False)


@pytest.fixture
def shortanswer_xml():
    return SHORTANSWER_XML

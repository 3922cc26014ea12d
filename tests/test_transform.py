"""Tests for the lxml XSLT adapter."""

import pytest

from transform import TransformationError, XsltTransformer

STYLESHEET = """<?xml version="1.0"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
<xsl:output method="xml" omit-xml-declaration="yes"/>
<xsl:param name="greeting" select="'hello'"/>
<xsl:template match="/"><out><xsl:value-of select="$greeting"/>, <xsl:value-of select="/in"/></out></xsl:template>
</xsl:stylesheet>
"""

EMPTY_STYLESHEET = """<?xml version="1.0"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
<xsl:output method="text"/>
<xsl:template match="/"/>
</xsl:stylesheet>
"""


@pytest.fixture
def files(tmp_path):
    stylesheet = tmp_path / "s.xsl"
    stylesheet.write_text(STYLESHEET, encoding="utf-8")
    data = tmp_path / "in.xml"
    data.write_text("<in>world</in>", encoding="utf-8")
    return stylesheet, data


class TestXsltTransformer:

    def test_apply_with_string_parameter(self, files):
        stylesheet, data = files
        assert XsltTransformer(stylesheet).apply(data, {"greeting": "it's"}).strip() == "<out>it's, world</out>"

    def test_default_parameter(self, files):
        stylesheet, data = files
        assert XsltTransformer(stylesheet).apply(data).strip() == "<out>hello, world</out>"

    def test_missing_stylesheet(self, tmp_path):
        with pytest.raises(TransformationError):
            XsltTransformer(tmp_path / "missing.xsl")

    def test_malformed_input(self, files):
        stylesheet, data = files
        data.write_text("<in><b>unclosed</in>", encoding="utf-8")
        with pytest.raises(TransformationError):
            XsltTransformer(stylesheet).apply(data)

    def test_empty_output_is_an_error(self, tmp_path, files):
        _, data = files
        stylesheet = tmp_path / "empty.xsl"
        stylesheet.write_text(EMPTY_STYLESHEET, encoding="utf-8")
        with pytest.raises(TransformationError):
            XsltTransformer(stylesheet).apply(data)

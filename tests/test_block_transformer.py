"""Tests for <<<mode>>>...<<<end>>> block transforms."""

import pytest

from aiflow.exceptions import UnknownTransformMode
from aiflow.variables.blocks import BlockTransformer, quoted_printable, text_to_html


class TestBlockTransformer:
    """Test block scanning and transform pipelines."""

    def setup_method(self):
        self.transformer = BlockTransformer()

    def test_text_without_blocks_unchanged(self):
        text = "Nothing <b>special</b> here\n"
        assert self.transformer.transform(text) == text

    def test_text_to_html(self):
        text = 'Before <<<text-to-html>>>a < b\n"q"<<<end>>> after'
        assert self.transformer.transform(text) == 'Before a &lt; b<br />\n&quot;q&quot; after'

    def test_quoted_printable(self):
        text = "<<<quoted-printable>>>café=<<<end>>>"
        assert self.transformer.transform(text) == "caf=C3=A9=3D"

    def test_pipeline_applies_left_to_right(self):
        text = "<<<text-to-html|quoted-printable>>>x=1\ny<<<end>>>"
        # html first (adds <br />), then '=' gets quoted-printable encoded
        assert self.transformer.transform(text) == "x=3D1<br />\ny"

    def test_nested_blocks_innermost_first(self):
        text = "<<<text-to-html>>>x <<<quoted-printable>>>=<<<end>>> & y<<<end>>>"
        assert self.transformer.transform(text) == "x =3D &amp; y"

    def test_multiple_blocks(self):
        text = "<<<text-to-html>>><a><<<end>>>|<<<text-to-html>>><b><<<end>>>"
        assert self.transformer.transform(text) == "&lt;a&gt;|&lt;b&gt;"

    def test_unknown_mode_is_fatal(self):
        with pytest.raises(UnknownTransformMode) as exc_info:
            self.transformer.transform("<<<text-to-html|rot13>>>abc<<<end>>>")
        assert "rot13" in str(exc_info.value)

    def test_unterminated_block_left_alone(self):
        text = "<<<text-to-html>>>no end marker"
        assert self.transformer.transform(text) == text


def test_text_to_html_line_breaks():
    assert text_to_html("a\r\nb\nc") == "a<br />\r\nb<br />\nc"
    assert text_to_html("'x' & y") == "&#x27;x&#x27; &amp; y"


def test_quoted_printable_ascii_passthrough():
    assert quoted_printable("plain text") == "plain text"

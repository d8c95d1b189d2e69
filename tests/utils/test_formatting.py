"""Tests for utils/formatting.py."""

from nexbot.utils.formatting import (
    blockquote,
    bold,
    copyable,
    escape_html,
    format_bytes,
    format_uptime,
    pre,
    truncate,
)


class TestHtml:
    def test_escape(self):
        assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"

    def test_bold_escapes(self):
        assert bold("a<b") == "<b>a&lt;b</b>"

    def test_pre_with_language(self):
        assert pre("x = 1", "python") == '<pre><code class="language-python">x = 1</code></pre>'

    def test_blockquote_keeps_markup(self):
        assert blockquote("<b>x</b>", expandable=True) == "<blockquote expandable><b>x</b></blockquote>"

    def test_copyable(self):
        assert copyable("help ping", ".") == (
            '<a href="tg://copy?text=.help%20ping"><code>.help ping</code></a>'
        )


class TestText:
    def test_truncate(self):
        assert truncate("abcdef", 10) == "abcdef"
        assert truncate("abcdefghijkl", 8) == "abcde..."

    def test_format_uptime(self):
        assert format_uptime(5) == "5s"
        assert format_uptime(65) == "1m 5s"
        assert format_uptime(3600) == "1h 0m 0s"
        assert format_uptime(93784) == "1d 2h 3m 4s"

    def test_format_bytes(self):
        assert format_bytes(512) == "512B"
        assert format_bytes(2048) == "2.0KB"
        assert format_bytes(5 * 1024 * 1024) == "5.0MB"

"""Tests for comment and literal masking."""

from modsplit.scanning import line_offsets, mask_source, offset_to_line


class TestMaskSource:
    """mask_source blanks comments and literals but keeps offsets."""

    def test_length_and_newlines_preserved(self):
        text = 'let a = "x // y"; // trailing\n/* block\n comment */ fn f() {}\n'
        masked = mask_source(text)
        assert len(masked) == len(text)
        assert masked.count("\n") == text.count("\n")

    def test_comment_and_string_contents_blanked(self):
        masked = mask_source('let a = "x // y"; // trailing\n')
        assert "//" not in masked
        assert "trailing" not in masked
        assert masked.startswith('let a = "')

    def test_nested_block_comments(self):
        masked = mask_source("/* a /* b */ c */ fn x() {}")
        assert masked.strip() == "fn x() {}"

    def test_raw_string_with_braces(self):
        masked = mask_source('const S: &str = r#"a "quoted" }"#;')
        assert "}" not in masked
        assert masked.endswith('"#;')

    def test_lifetimes_are_not_char_literals(self):
        masked = mask_source("fn f<'a>(x: &'a str) -> char { '}' }")
        assert "<'a>" in masked
        assert masked.count("}") == 1

    def test_escaped_quote_char_literal(self):
        masked = mask_source("let q = '\\''; fn g() {}")
        assert masked.endswith("; fn g() {}")
        assert masked.count("'") == 2

    def test_unterminated_string_runs_to_end(self):
        assert mask_source('"abc') == '"   '


class TestLineOffsets:
    def test_offsets_and_lookup(self):
        text = "a\nbb\nc"
        offsets = line_offsets(text)
        assert offsets == [0, 2, 5]
        assert offset_to_line(offsets, 0) == 1
        assert offset_to_line(offsets, 3) == 2
        assert offset_to_line(offsets, 5) == 3

"""
Tests for the block literal text document (dump_text and parse_text).
"""

import pytest
import ruamel.yaml

import msbt


GREETING_TEXT = (
    "Greeting: |-\n"
    "  Hello\n"
    "  world\n"
)


def round_trip(model):
    return msbt.from_text(model.to_text())


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

class TestDump:
    def test_greeting(self):
        model = msbt.MSBT([(0, "Greeting")], ["Hello\nworld"])
        assert model.to_text() == GREETING_TEXT

    def test_records_are_adjacent(self):
        model = msbt.MSBT([(0, "A"), (1, "B")], ["x", "y"])
        assert model.to_text() == "A: |-\n  x\nB: |-\n  y\n"

    def test_empty_lines_are_indented(self):
        model = msbt.MSBT([(0, "Empty"), (1, "Gap")], ["", "a\n\nb"])
        assert model.to_text() == "Empty: |-\n  \nGap: |-\n  a\n  \n  b\n"

    def test_label_order_is_kept(self):
        model = msbt.MSBT([(1, "Second"), (0, "First")], ["one", "two"])
        assert model.to_text() == "Second: |-\n  two\nFirst: |-\n  one\n"

    def test_empty_model(self):
        assert msbt.MSBT().to_text() == ""

    def test_is_valid_yaml(self):
        model = msbt.MSBT([(0, "Greeting"), (1, "Farewell")], ["Hello\nworld", "Good bye"])
        loaded = ruamel.yaml.YAML(typ='safe').load(model.to_text())
        assert loaded == {"Greeting": "Hello\nworld", "Farewell": "Good bye"}


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

class TestParse:
    def test_greeting(self):
        model = msbt.from_text(GREETING_TEXT)
        assert model.labels == ((0, "Greeting"),)
        assert model.texts == ("Hello\nworld",)

    def test_two_records(self):
        labels, texts = msbt.parse_text("A: |-\n  x\nB: |-\n  y\n")
        assert labels == ((0, "A"), (1, "B"))
        assert texts == ("x", "y")

    def test_missing_trailing_newline(self):
        labels, texts = msbt.parse_text("A: |-\n  x\nB: |-\n  y")
        assert texts == ("x", "y")

    def test_empty_body(self):
        labels, texts = msbt.parse_text("Empty: |-\n  \nNext: |-\n  z\n")
        assert labels == ((0, "Empty"), (1, "Next"))
        assert texts == ("", "z")

    def test_no_separator_gives_no_entries(self):
        assert msbt.parse_text("") == ((), ())
        assert msbt.parse_text("just some words\n") == ((), ())

    def test_trailing_text_without_separator_is_ignored(self):
        labels, texts = msbt.parse_text("A: |-\n  x\n\n")
        assert labels == ((0, "A"),)
        assert texts == ("x",)

    def test_label_without_body(self):
        with pytest.raises(msbt.TruncatedDocumentError):
            msbt.parse_text("Label: |-\n")

    def test_second_label_without_body(self):
        with pytest.raises(msbt.TruncatedDocumentError) as exc:
            msbt.parse_text("A: |-\n  x\nB: |-")
        assert "B" in str(exc.value)

    def test_extra_indent_is_kept(self):
        labels, texts = msbt.parse_text("A: |-\n      deep\n    less\n")
        assert texts == ("    deep\n  less",)

    def test_first_colon_ends_the_label(self):
        labels, texts = msbt.parse_text("Key:Sub: |-\n  x\n")
        assert labels == ((0, "Key"),)
        assert texts == ("x",)

    def test_indexes_restart_per_document(self):
        first = msbt.from_text("A: |-\n  x\n")
        second = msbt.from_text("B: |-\n  y\n")
        assert first.labels == ((0, "A"),)
        assert second.labels == ((0, "B"),)


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------

class TestRoundTrip:
    @pytest.mark.parametrize("body", [
        "Hello\nworld",
        "",
        "\n",
        "trailing newline\n",
        "\nleading newline",
        "  leading spaces",
        "trailing spaces   ",
        "a\n\n\nb",
        "carriage\r\nreturn",
        "label: |-\nlooking text",
        "Ünïcödé 日本語 \x0e\x00\x02\x00\x00",
    ])
    def test_body(self, body):
        model = msbt.MSBT([(0, "Entry"), (1, "After")], [body, "next"])
        assert round_trip(model) == model

    def test_text_then_binary_then_text(self):
        text = "Title: |-\n  The Quest\nIntro: |-\n  Once upon\n  \n  a time\n"
        model = msbt.from_text(text)
        assert msbt.from_binary(model.to_binary()).to_text() == text

    def test_binary_then_text_then_binary(self):
        model = msbt.MSBT([(0, "A"), (1, "B"), (2, "C")], ["one", "two\nlines", ""])
        data = model.to_binary()
        assert msbt.from_text(msbt.from_binary(data).to_text()).to_binary() == data

    def test_output_is_deterministic(self):
        assert msbt.from_text(GREETING_TEXT).to_text() == GREETING_TEXT

"""
Unit Tests — Text-Pattern PDF Extraction
═════════════════════════════════════════
Covers the four heuristics, escape decoding, ordering and the
"all strategies failed" path. Pure functions: no I/O, no mocks.
"""

from __future__ import annotations

import pytest

from caredocs.processing.pdf_patterns import (
    NoUsableTextError,
    collapse_whitespace,
    extract_between_markers,
    extract_pdf_text,
    extract_readable_ascii,
    extract_stream_objects,
    extract_text_objects,
    unescape_pdf_string,
)
from caredocs.schemas.documents import ExtractionMethod


@pytest.mark.unit
@pytest.mark.extraction
class TestUnescape:

    def test_simple_escapes(self):
        assert unescape_pdf_string(r"Total \(fasting\)") == "Total (fasting)"

    def test_octal_escape(self):
        # \341 = á
        assert unescape_pdf_string(r"An\341lisis") == "Análisis"

    def test_backslash_escape_is_not_double_decoded(self):
        assert unescape_pdf_string(r"a\\n") == "a\\n"

    def test_newlines_collapse_to_single_space(self):
        assert unescape_pdf_string(r"Line one\nLine   two") == "Line one Line two"

    def test_empty(self):
        assert unescape_pdf_string("") == ""

    def test_collapse_whitespace(self):
        assert collapse_whitespace("  a \n\t b  ") == "a b"


@pytest.mark.unit
@pytest.mark.extraction
class TestTextObjects:

    def test_tj_strings_inside_text_block(self):
        """Literal strings shown with Tj lose their parentheses and operator."""
        pdf = "BT /F1 12 Tf (Patient Name) Tj 0 -14 Td (12.4 mg/dL) Tj ET"
        text = extract_text_objects(pdf)

        assert "Patient Name" in text
        assert "12.4 mg/dL" in text
        assert "(" not in text
        assert "Tj" not in text

    def test_tj_array_strings_drop_kerning(self):
        pdf = "BT [(Hemo) -250 (globin) 120 (13.5)] TJ ET"
        text = extract_text_objects(pdf)
        assert text == "Hemo globin 13.5"

    def test_block_literal_not_duplicated(self):
        pdf = "BT (Glucose fasting) Tj ET"
        assert extract_text_objects(pdf) == "Glucose fasting"

    def test_other_block_literals_are_collected(self):
        pdf = "BT (Reference range) ' ET"
        assert extract_text_objects(pdf) == "Reference range"

    def test_short_strings_are_dropped(self):
        assert extract_text_objects("BT (ab) Tj ET") == ""


@pytest.mark.unit
@pytest.mark.extraction
class TestOtherHeuristics:

    def test_markers_require_a_letter(self):
        pdf = "BT (123) Tj (Cholesterol) Tj ET (outside block) Tj"
        text = extract_between_markers(pdf)
        assert "Cholesterol" in text
        assert "123" not in text
        assert "outside" not in text

    def test_stream_literals(self):
        pdf = "4 0 obj\nstream\n(Urine culture negative) Tj\nendstream\nendobj"
        assert extract_stream_objects(pdf) == "Urine culture negative"

    def test_stream_residue_when_no_literals(self):
        pdf = "stream\nplain words inside the stream body here\nendstream"
        assert extract_stream_objects(pdf) == "plain words inside the stream body here"

    def test_readable_ascii_filters_structure_and_numbers(self):
        pdf = "1 0 obj << /Type /Page >> endobj 12.50 Ferritin levels"
        text = extract_readable_ascii(pdf)
        assert "Ferritin" in text
        assert "levels" in text
        assert "endobj" not in text
        assert "12.50" not in text


@pytest.mark.unit
@pytest.mark.extraction
class TestExtractPdfText:

    def test_first_heuristic_over_threshold_wins(self, sample_pdf_bytes):
        result = extract_pdf_text(sample_pdf_bytes)

        assert result.method is ExtractionMethod.PATTERN_TEXT_OBJECT
        assert "Hemoglobin 13.5 g/dL" in result.text
        assert "Platelet count 250" in result.text
        assert len(result.text) > 100

    def test_short_text_falls_through_to_later_heuristic(self):
        # Text-object output is short; the whole-file readable pass is long enough
        words = " ".join(["Neurology"] * 15)
        pdf = f"BT (tiny) Tj ET\n{words}\n".encode("latin-1")

        result = extract_pdf_text(pdf)

        assert result.method is ExtractionMethod.PATTERN_READABLE_ASCII
        assert "Neurology" in result.text

    def test_no_usable_text_raises(self, textless_pdf_bytes):
        with pytest.raises(NoUsableTextError, match="All PDF extraction strategies failed"):
            extract_pdf_text(textless_pdf_bytes)

    def test_min_chars_is_configurable(self):
        body = "x" * 100
        pdf = f"BT ({body}) Tj ET".encode("latin-1")
        with pytest.raises(NoUsableTextError):
            extract_pdf_text(pdf, min_chars=200)

from __future__ import annotations

import fitz
import pytest

from errors import DecodeFailure
from models import FragmentId
from pdf_backend import FitzDecoder, FitzMutator
from session import EditSession

from conftest import PAGE_HEIGHT, make_pdf


def _spans(data: bytes) -> list[dict]:
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        spans = []
        for block in doc[0].get_text("dict")["blocks"]:
            for line in block.get("lines", []):
                spans.extend(line["spans"])
        return spans
    finally:
        doc.close()


def test_decoder_reports_pdf_space_transform():
    data = make_pdf([("Hello", 100, PAGE_HEIGHT - 700)])
    decoder = FitzDecoder()
    decoded = decoder.decode(data)
    try:
        page = decoder.get_page(decoded, 1)
        items = [i for i in decoder.get_text_fragments(page) if i.text.strip()]
        rendered = decoder.render(page, 1.5)
    finally:
        decoder.close(decoded)

    assert decoded.page_count == 1
    assert [i.text for i in items] == ["Hello"]
    assert items[0].transform == pytest.approx((12, 0, 0, 12, 100, 700), abs=0.01)
    assert items[0].width > 0
    assert rendered.page_height == pytest.approx(PAGE_HEIGHT)
    assert rendered.viewport_height == pytest.approx(PAGE_HEIGHT * 1.5)
    assert rendered.raster.width == pytest.approx(612 * 1.5, abs=1)


def test_session_load_with_pymupdf():
    session = EditSession()
    session.load(make_pdf([("Hello", 100, PAGE_HEIGHT - 700)]))

    fragment = session.registry.get(FragmentId(1, 0))
    assert fragment.original_text == "Hello"
    assert fragment.render_position == pytest.approx((150, 92 * 1.5 - 18), abs=0.01)
    assert fragment.font_size_render == pytest.approx(18, abs=0.01)


def test_invalid_bytes_raise_decode_failure():
    with pytest.raises(DecodeFailure):
        EditSession().load(b"this is not a pdf")


def test_export_draws_cover_and_replacement_text():
    session = EditSession()
    session.load(make_pdf([("Hello", 100, PAGE_HEIGHT - 700)]))
    session.edit(FragmentId(1, 0), "Hi")

    data = session.export().data

    hi = [s for s in _spans(data) if s["text"] == "Hi"]
    assert len(hi) == 1
    assert hi[0]["origin"] == pytest.approx((100, PAGE_HEIGHT - 700), abs=0.05)
    assert hi[0]["size"] == pytest.approx(12, abs=0.01)

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        drawings = doc[0].get_drawings()
    finally:
        doc.close()
    assert len(drawings) == 1
    cover = drawings[0]["rect"]
    assert cover.x0 == pytest.approx(98, abs=0.05)
    # Top of glyph box plus padding, bottom at baseline plus padding (page coords)
    assert cover.y0 == pytest.approx(PAGE_HEIGHT - 714, abs=0.05)
    assert cover.y1 == pytest.approx(PAGE_HEIGHT - 698, abs=0.05)
    assert drawings[0]["fill"] == pytest.approx((1.0, 1.0, 1.0))


def test_export_without_edits_adds_no_content():
    session = EditSession()
    session.load(make_pdf([("Hello", 100, 92), ("World", 100, 140)]))

    data = session.export().data

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        assert doc[0].get_drawings() == []
    finally:
        doc.close()
    assert sorted(s["text"] for s in _spans(data)) == ["Hello", "World"]


def test_blank_edit_only_covers_text():
    session = EditSession()
    session.load(make_pdf([("Hello", 100, 92)]))
    session.edit(FragmentId(1, 0), " ")

    data = session.export().data

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        assert len(doc[0].get_drawings()) == 1
    finally:
        doc.close()
    assert [s["text"] for s in _spans(data)] == ["Hello"]


def test_mutator_rejects_unknown_font():
    mutator = FitzMutator()
    doc = mutator.load(make_pdf([("Hello", 100, 92)]))
    try:
        assert mutator.embed_standard_font(doc, "Helvetica") == "helv"
        with pytest.raises(ValueError):
            mutator.embed_standard_font(doc, "Comic Sans")
    finally:
        doc.close()


def test_mutator_close_is_idempotent():
    mutator = FitzMutator()
    doc = mutator.load(make_pdf([("Hello", 100, 92)]))

    assert mutator.save(doc).startswith(b"%PDF")
    mutator.close(doc)
    mutator.close(doc)

    assert doc.is_closed

"""
Tests for document preparation, raw text extraction and box geometry.
"""

import base64
import json
import math

import httpx
import pytest

from pdfpipeline.core.extractors import DocumentPreparer
from pdfpipeline.core.extractors.pdf_text import (
    NO_TEXT_PLACEHOLDER,
    blueprints_from_page_text,
    build_fallback_pages,
    extract_text_segments,
    split_into_blocks,
)
from pdfpipeline.core.geometry import (
    bounding_box_from_vertices,
    clamp_bounding_box,
    fallback_bounding_box,
    normalize_bounding_box,
)
from pdfpipeline.core.schemas.job import BoundingBox, TranslationJob
from pdfpipeline.core.schemas.pipeline import DEFAULT_PAGE_HEIGHT, DEFAULT_PAGE_WIDTH, PreparedPage

from conftest import HELLO_PDF


def make_job(**fields):
    fields.setdefault("target_language", "fr")
    fields.setdefault("source_file_key", "sources/anonymous/job/job.pdf")
    fields.setdefault("source_file_name", "hello.pdf")
    return TranslationJob(**fields)


class TestTextExtraction:

    def test_text_show_operators(self):
        assert extract_text_segments(HELLO_PDF) == ["Hello world. Nice to meet you."]

    def test_escapes_and_whitespace(self):
        pdf = b"BT (first\\nline   here) Tj (  ) Tj (second) Tj ET"
        assert extract_text_segments(pdf) == ["first line here", "second"]

    def test_printable_fallback(self):
        assert extract_text_segments(b"%PDF-1.7\x00\x01stream\xff") == ["%PDF-1.7 stream"]

    def test_placeholder_when_nothing_printable(self):
        assert extract_text_segments(b"\x00\x01\x02") == [NO_TEXT_PLACEHOLDER]

    def test_split_keeps_decimals(self):
        assert split_into_blocks("Pi is 3.14. Next") == ["Pi is 3.14.", "Next."]

    def test_split_sentences(self):
        assert split_into_blocks("Hello world.  Nice to\nmeet you.") == ["Hello world.", "Nice to meet you."]

    def test_split_empty(self):
        assert split_into_blocks("   ") == []

    def test_fallback_page_and_blueprints(self):
        pages = build_fallback_pages(HELLO_PDF)
        assert len(pages) == 1
        assert pages[0].page_number == 1
        assert (pages[0].width, pages[0].height) == (612, 792)

        blueprints = blueprints_from_page_text(pages)
        assert [b.block_id for b in blueprints] == ["page1_block_0", "page1_block_1"]
        assert [b.text for b in blueprints] == ["Hello world.", "Nice to meet you."]
        assert blueprints[1].bounding_box.y > blueprints[0].bounding_box.y


class TestGeometry:

    def test_normalize_alternate_names_and_floors(self):
        box = normalize_bounding_box({"left": 10, "top": -5, "w": 0.2, "h": "12"})
        assert (box.x, box.y, box.width, box.height) == (10.0, 0.0, 1.0, 12.0)

    @pytest.mark.parametrize("raw", [None, "box", {"x": "abc", "y": 1, "width": 2, "height": 3},
                                     {"x": math.nan, "y": 1, "width": 2, "height": 3}])
    def test_normalize_rejects_bad_input(self, raw):
        assert normalize_bounding_box(raw) is None

    def test_clamp_to_page(self):
        page = PreparedPage(page_number=1, width=100, height=100)
        box = clamp_bounding_box(BoundingBox(x=90, y=50, width=50, height=80), page)
        assert (box.x, box.y, box.width, box.height) == (90, 50, 10, 50)

    def test_clamp_without_page_is_identity(self):
        box = BoundingBox(x=900, y=900, width=5, height=5)
        assert clamp_bounding_box(box, None) is box

    def test_fallback_boxes_stay_on_page(self):
        first = fallback_bounding_box(0)
        assert (first.x, first.y, first.width) == (48, 72, 516)

        last = fallback_bounding_box(500)
        assert last.y + last.height <= 792

    def test_box_from_vertices(self):
        box = bounding_box_from_vertices([
            {"x": 10, "y": 20}, {"x": 110, "y": 20}, {"x": 110, "y": 60}, {"x": 10, "y": 60},
        ])
        assert (box.x, box.y, box.width, box.height) == (10, 20, 100, 40)

    def test_box_from_vertices_degenerate(self):
        assert bounding_box_from_vertices([]) is None
        point = bounding_box_from_vertices([{"x": 5, "y": 5}])
        assert (point.width, point.height) == (1, 1)


class TestDocumentPreparer:

    @pytest.mark.asyncio
    async def test_fallback_without_service(self, settings, mock_http):
        preparer = DocumentPreparer(settings, mock_http())
        document = await preparer.prepare(make_job(), HELLO_PDF, requires_ocr=False)

        assert not document.used_service
        assert not document.requires_ocr
        assert len(document.pages) == 1
        assert [b.text for b in document.blueprints] == ["Hello world.", "Nice to meet you."]

    @pytest.mark.asyncio
    async def test_service_pages_and_blocks(self, make_settings, mock_http):
        settings = make_settings(
            document_prepare_service_url="https://prepare.example.com/prepare",
            document_prepare_service_token="tok",
        )
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "pageCount": 1,
                "requiresOcr": True,
                "pages": [{
                    "pageNumber": 1,
                    "width": 595.3,
                    "height": 841.9,
                    "backgroundImage": {"data": "aGk=", "contentType": "image/jpeg"},
                    "blocks": [
                        {"blockId": "title", "text": " Annual report ", "bbox": {"x": 40, "y": 50, "width": 300, "height": 20}},
                        {"text": "   "},
                        {"text": "Summary"},
                    ],
                }],
            })

        preparer = DocumentPreparer(settings, mock_http(handler))
        document = await preparer.prepare(make_job(ocr_enabled=True), HELLO_PDF, requires_ocr=False)

        assert seen["auth"] == "Bearer tok"
        assert seen["body"]["fileName"] == "hello.pdf"
        assert seen["body"]["ocrPreferred"] is True
        assert base64.b64decode(seen["body"]["fileBase64"]) == HELLO_PDF

        assert document.used_service
        assert document.requires_ocr
        assert document.service_metadata == {"pageCount": 1}
        page = document.pages[0]
        assert (page.width, page.height) == (595.3, 841.9)
        assert page.background_data_uri == "data:image/jpeg;base64,aGk="
        assert [(b.block_id, b.text) for b in document.blueprints] == [
            ("title", "Annual report"),
            ("blk_1_2", "Summary"),
        ]
        assert document.blueprints[0].bounding_box.width == 300
        assert document.blueprints[1].bounding_box is None

    @pytest.mark.asyncio
    async def test_service_pages_without_blocks_use_page_text(self, make_settings, mock_http):
        settings = make_settings(document_prepare_service_url="https://prepare.example.com/prepare")

        def handler(request):
            return httpx.Response(200, json={"pages": [{"pageNumber": 2, "textContent": "One. Two."}]})

        preparer = DocumentPreparer(settings, mock_http(handler))
        document = await preparer.prepare(make_job(), HELLO_PDF, requires_ocr=True)

        assert document.used_service
        assert document.requires_ocr
        assert [(b.page_number, b.text) for b in document.blueprints] == [(2, "One."), (2, "Two.")]

    @pytest.mark.asyncio
    async def test_service_failure_falls_back(self, make_settings, mock_http):
        settings = make_settings(document_prepare_service_url="https://prepare.example.com/prepare")

        def handler(request):
            return httpx.Response(502, text="bad gateway")

        preparer = DocumentPreparer(settings, mock_http(handler))
        document = await preparer.prepare(make_job(), HELLO_PDF, requires_ocr=True)

        assert not document.used_service
        assert document.requires_ocr
        assert document.service_metadata == {}
        assert [b.text for b in document.blueprints] == ["Hello world.", "Nice to meet you."]

    @pytest.mark.asyncio
    async def test_malformed_service_values_use_defaults(self, make_settings, mock_http):
        settings = make_settings(document_prepare_service_url="https://prepare.example.com/prepare")

        def handler(request):
            return httpx.Response(200, json={"pages": [{
                "pageNumber": "first",
                "width": "auto",
                "height": None,
                "rotation": "sideways",
                "dpi": "high",
                "textContent": 42,
                "backgroundImage": {"dataUri": 7},
                "blocks": [{"text": "Hi."}, {"text": 12}, {"id": 5, "text": "There.", "metadata": "x"}],
            }]})

        preparer = DocumentPreparer(settings, mock_http(handler))
        document = await preparer.prepare(make_job(), HELLO_PDF, requires_ocr=False)

        assert document.used_service
        page = document.pages[0]
        assert (page.page_number, page.width, page.height) == (1, DEFAULT_PAGE_WIDTH, DEFAULT_PAGE_HEIGHT)
        assert (page.rotation, page.dpi) == (0, None)
        assert page.text_content is None
        assert page.background_data_uri is None
        assert [(b.page_number, b.block_id, b.text) for b in document.blueprints] == [
            (1, "blk_1_0", "Hi."),
            (1, "5", "There."),
        ]
        assert document.blueprints[1].metadata is None

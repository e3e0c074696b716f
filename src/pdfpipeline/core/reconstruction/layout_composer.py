"""
Layout Composer - builds the HTML preview of the translated document.

Pages whose segments all carry a bounding box are rendered with absolutely
positioned text boxes; any other page falls back to flowed paragraphs.
"""

import html
import logging
from typing import Dict, List, Sequence, Union

from ..schemas.pipeline import PipelineSegment, PreparedPage, TranslatedSegment

logger = logging.getLogger(__name__)

BACKGROUND_OPACITY = 0.2

PREVIEW_STYLES = f"""
    :root {{ color-scheme: light; }}
    * {{ box-sizing: border-box; }}
    body {{
      margin: 0;
      padding: 32px;
      background: #f3f4f6;
      font-family: "Inter", "Helvetica", sans-serif;
    }}
    main {{
      max-width: 960px;
      margin: 0 auto;
    }}
    .page {{
      position: relative;
      margin: 24px auto;
      background: #fff;
      border-radius: 6px;
      box-shadow: 0 15px 45px rgba(15, 23, 42, 0.15);
      overflow: hidden;
    }}
    .page__background {{
      position: absolute;
      inset: 0;
      width: 100%;
      height: 100%;
      object-fit: cover;
      filter: opacity({BACKGROUND_OPACITY});
    }}
    .page__overlay {{
      position: absolute;
      inset: 0;
      padding: 48px 56px;
      font-size: 14px;
      line-height: 1.6;
      color: #111827;
    }}
    .page__overlay--flow {{
      display: flex;
      flex-direction: column;
      gap: 12px;
      position: relative;
    }}
    .page__textbox {{
      position: absolute;
      white-space: pre-wrap;
      overflow-wrap: anywhere;
    }}
    .page__paragraph {{
      margin: 0;
      white-space: pre-wrap;
    }}
"""


def _px(value: float) -> Union[int, float]:
    value = float(value)
    return int(value) if value.is_integer() else round(value, 2)


def _page_section(page: PreparedPage, segments: Sequence[PipelineSegment],
                  translations: Dict[str, TranslatedSegment]) -> str:
    positioned = all(segment.bounding_box is not None for segment in segments)

    parts: List[str] = []
    for segment in segments:
        translation = translations.get(segment.id)
        if translation is None:
            continue
        text = html.escape(translation.target_text)
        if positioned:
            box = segment.bounding_box
            parts.append(
                f'<div class="page__textbox" style="left:{_px(box.x)}px;top:{_px(box.y)}px;'
                f'width:{_px(box.width)}px;height:{_px(box.height)}px;">{text}</div>'
            )
        else:
            parts.append(f'<p class="page__paragraph">{text}</p>')

    background = ""
    if page.background_data_uri:
        background = (
            f'<img class="page__background" src="{html.escape(page.background_data_uri)}" '
            f'alt="Page {page.page_number} background" />'
        )

    overlay_class = "page__overlay" if positioned else "page__overlay page__overlay--flow"
    segment_html = "\n".join(parts)

    return (
        f'<section class="page" data-page="{page.page_number}" '
        f'style="width:{_px(page.width)}px;height:{_px(page.height)}px;">\n'
        f'  {background}\n'
        f'  <div class="{overlay_class}">\n'
        f'    {segment_html}\n'
        f'  </div>\n'
        f'</section>'
    )


def build_html_layout(pages: Sequence[PreparedPage], segments: Sequence[PipelineSegment],
                      translations: Sequence[TranslatedSegment]) -> str:
    """
    Compose a standalone HTML document, one `<section class="page">` per page.

    Args:
        pages: Prepared pages in document order
        segments: Persisted segments
        translations: Translations keyed by segment id

    Returns:
        HTML document as a string
    """
    translations_by_segment = {item.segment_id: item for item in translations}

    segments_by_page: Dict[int, List[PipelineSegment]] = {}
    for segment in segments:
        segments_by_page.setdefault(segment.page_number, []).append(segment)

    sections = [
        _page_section(page, segments_by_page.get(page.page_number, []), translations_by_segment)
        for page in pages
    ]
    logger.debug(f"Composed HTML layout for {len(sections)} page(s)")
    body = "\n".join(sections)

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '  <meta charset="utf-8" />\n'
        "  <title>Translated PDF Preview</title>\n"
        f"  <style>{PREVIEW_STYLES}  </style>\n"
        "</head>\n"
        "<body>\n"
        "  <main>\n"
        f"    {body}\n"
        "  </main>\n"
        "</body>\n"
        "</html>"
    )

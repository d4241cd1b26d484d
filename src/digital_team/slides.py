"""Split presentation markup into slides.

Every top-level ``<section>`` element is one slide. A slide's markup is the
exact source text of its section, from ``<section`` through the matching
``</section>``, nothing reformatted. Nested sections stay inside their
parent slide.
"""

import logging
from html.parser import HTMLParser
from typing import Optional, Sequence

from .core import Slide

logger = logging.getLogger(__name__)

SLIDE_TAG = "section"


class _SectionScanner(HTMLParser):
    """Record (start, end) source offsets of top-level slide blocks."""

    def __init__(self, markup: str):
        super().__init__(convert_charrefs=False)
        self.markup = markup
        self.spans: list[tuple[int, int]] = []
        self._depth = 0
        self._start: int | None = None
        self._line_starts = [0]
        for i, ch in enumerate(markup):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def _offset(self) -> int:
        line, col = self.getpos()
        return self._line_starts[line - 1] + col

    def handle_starttag(self, tag, attrs):
        if tag != SLIDE_TAG:
            return
        if self._depth == 0:
            self._start = self._offset()
        self._depth += 1

    def handle_startendtag(self, tag, attrs):
        # <section/> opens nothing in HTML; treat as an empty slide
        if tag == SLIDE_TAG and self._depth == 0:
            start = self._offset()
            self.spans.append((start, start + len(self.get_starttag_text() or "")))

    def handle_endtag(self, tag):
        if tag != SLIDE_TAG or self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0 and self._start is not None:
            pos = self._offset()
            close = self.markup.find(">", pos)
            end = len(self.markup) if close == -1 else close + 1
            self.spans.append((self._start, end))
            self._start = None

    def finish(self) -> list[tuple[int, int]]:
        self.close()
        if self._depth > 0 and self._start is not None:
            # Unterminated last slide runs to the end of the markup.
            self.spans.append((self._start, len(self.markup)))
        return self.spans


def parse_slides(markup: str | None, audio_refs: Sequence[Optional[str]] | None = None) -> list[Slide]:
    """Return the slides of ``markup`` in document order.

    Slide ``i`` is paired with ``audio_refs[i]`` when that entry exists and
    is non-empty. Markup that cannot be scanned yields no slides.
    """
    if not markup or not isinstance(markup, str):
        return []
    audio_refs = list(audio_refs or [])

    scanner = _SectionScanner(markup)
    try:
        scanner.feed(markup)
        spans = scanner.finish()
    except Exception as e:
        logger.error("Error parsing presentation markup: %s", e)
        return []

    slides = []
    for i, (start, end) in enumerate(spans):
        audio = audio_refs[i] if i < len(audio_refs) else None
        slides.append(Slide(index=i, html=markup[start:end], audio=audio or None))
    return slides

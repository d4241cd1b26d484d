"""Tests for the fixed deck renderer."""

from digital_team.generation import SlideContentRequest
from digital_team.markup import render_presentation
from digital_team.slides import parse_slides


def _request(**kwargs):
    kwargs.setdefault("source_text", "notes")
    kwargs.setdefault("featured_service", "Managed Payroll")
    return SlideContentRequest(**kwargs)


def _kinds(markup):
    return [s.html.split('"')[1].removeprefix("slide slide-") for s in parse_slides(markup)]


class TestRenderPresentation:
    def test_deck_without_announcement_has_nine_slides(self, slide_content):
        content = slide_content.apply_request(_request())
        assert _kinds(render_presentation(content)) == [
            "title",
            "overview",
            "tip",
            "tip-continuation",
            "selling-tip",
            "featured-service",
            "faq",
            "quote",
            "thank-you",
        ]

    def test_deck_with_announcement_has_ten_slides(self, slide_content):
        content = slide_content.apply_request(_request(
            announcement_title="Office Closed Friday",
            announcement_content="We reopen Monday.",
            announcement_closing="Enjoy the long weekend!",
        ))
        kinds = _kinds(render_presentation(content))
        assert len(kinds) == 10
        assert kinds.index("announcement") == kinds.index("faq") + 1

    def test_overview_lists_announcement_only_when_present(self, slide_content):
        plain = render_presentation(slide_content.apply_request(_request()))
        overview = parse_slides(plain)[1].html
        assert "Announcement" not in overview
        assert "Motivational Quote" in overview

        announced = render_presentation(slide_content.apply_request(_request(announcement_title="News")))
        assert "<h3>Announcement</h3>" in parse_slides(announced)[1].html

    def test_user_fields_appear_exactly(self, slide_content):
        content = slide_content.apply_request(_request(
            featured_service="Payroll & Benefits",
            announcement_title="Town Hall",
            announcement_content="Thursday at 3pm",
            announcement_closing="See you there",
        ))
        slides = parse_slides(render_presentation(content))
        featured = next(s.html for s in slides if "slide-featured-service" in s.html)
        announcement = next(s.html for s in slides if "slide-announcement" in s.html)
        assert "<h1>Payroll &amp; Benefits</h1>" in featured
        assert "<h1>Town Hall</h1>" in announcement
        assert "Thursday at 3pm" in announcement
        assert "See you there" in announcement

    def test_text_is_escaped(self, slide_content):
        slide_content.title = "<script>alert(1)</script>"
        markup = render_presentation(slide_content)
        assert "<script>" not in markup
        assert "&lt;script&gt;" in markup

    def test_list_fields_render_as_items(self, slide_content):
        slides = parse_slides(render_presentation(slide_content))
        tip = slides[2].html
        assert tip.count("<li>") == len(slide_content.tip_action_items)
        continuation = slides[3].html
        assert continuation.count("<li>") == len(slide_content.tip_implementation_steps)

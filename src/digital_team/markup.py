"""Render structured slide content into the fixed presentation deck.

Each slide is one ``<section>`` block. The announcement slide, and its
entry on the session overview, only appear when an announcement title was
supplied.
"""

from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .generation import SlideContent

OVERVIEW_ITEMS = [
    ("Work-Related Tip", "Professional workplace strategies"),
    ("General Selling Tip", "Proven rebuttals & sales techniques"),
    ("Featured Service of the Night", "Tonight's spotlight service"),
    ("Service FAQ", "Common questions & expert answers"),
    ("Announcement", "Important updates & reminders"),
    ("Motivational Quote", "Inspiration for success"),
]


def _t(value: str) -> str:
    return escape(value or "", quote=False)


def _section(kind: str, body: list[str]) -> str:
    lines = [f'<section class="slide slide-{kind}">']
    lines.extend(f"  {line}" for line in body)
    lines.append("</section>")
    return "\n".join(lines)


def _bullets(items: list[str]) -> list[str]:
    return ["<ul>", *(f"  <li>{_t(item)}</li>" for item in items), "</ul>"]


def render_title(c: "SlideContent") -> str:
    return _section("title", [
        f"<h1>{_t(c.title)}</h1>",
        f'<p class="subtitle">{_t(c.subtitle)}</p>',
        f'<p class="presenter">{_t(c.presenter)}</p>',
    ])


def render_overview(include_announcement: bool) -> str:
    body = [
        "<h2>SESSION OVERVIEW</h2>",
        "<p>What we'll cover in today's sales mastery workshop</p>",
        "<ol>",
    ]
    for heading, blurb in OVERVIEW_ITEMS:
        if heading == "Announcement" and not include_announcement:
            continue
        body.append(f"  <li><h3>{heading}</h3><p>{escape(blurb, quote=False)}</p></li>")
    body.append("</ol>")
    return _section("overview", body)


def render_tip(c: "SlideContent") -> str:
    return _section("tip", [
        f"<h2>{_t(c.tip_title)}</h2>",
        f"<h3>{_t(c.tip_intro)}</h3>",
        f"<p>{_t(c.tip_para1)}</p>",
        f"<p>{_t(c.tip_para2)}</p>",
        "<h4>Key Action Items:</h4>",
        *_bullets(c.tip_action_items),
        "<h4>Remember:</h4>",
        f"<p>{_t(c.tip_takeaway)}</p>",
    ])


def render_tip_continuation(c: "SlideContent") -> str:
    return _section("tip-continuation", [
        f"<h3>{_t(c.tip_continuation_title)}</h3>",
        f"<p>{_t(c.tip_continuation_para1)}</p>",
        f"<p>{_t(c.tip_continuation_para2)}</p>",
        f"<p>{_t(c.tip_continuation_para3)}</p>",
        "<h4>Implementation Steps:</h4>",
        *_bullets(c.tip_implementation_steps),
        "<h4>Your Next Action:</h4>",
        f"<p>{_t(c.tip_next_action)}</p>",
    ])


def render_selling_tip(c: "SlideContent") -> str:
    return _section("selling-tip", [
        f"<h1>&quot;{_t(c.objection)}&quot;</h1>",
        "<h2>Agent's Rebuttal:</h2>",
        f"<p>&quot;{_t(c.rebuttal)}&quot;</p>",
        "<h2>Why This Works:</h2>",
        *_bullets([c.rebuttal_why1, c.rebuttal_why2, c.rebuttal_why3, c.rebuttal_why4]),
    ])


def render_featured_service(c: "SlideContent") -> str:
    return _section("featured-service", [
        f"<h2>{_t(c.featured_service_title or 'FEATURED SERVICE TONIGHT')}</h2>",
        f"<h1>{_t(c.featured_service_name)}</h1>",
    ])


def render_faq(c: "SlideContent") -> str:
    return _section("faq", [
        f"<h1>&quot;{_t(c.faq_question)}&quot;</h1>",
        "<h2>Agent's Answer:</h2>",
        f"<p>&quot;{_t(c.faq_answer)}&quot;</p>",
    ])


def render_announcement(c: "SlideContent") -> str:
    return _section("announcement", [
        f'<p class="header">{_t(c.announcement_header)}</p>',
        f"<h1>{_t(c.announcement_title)}</h1>",
        f"<p>{_t(c.announcement_content)}</p>",
        f'<p class="closing">{_t(c.announcement_closing)}</p>',
    ])


def render_quote(c: "SlideContent") -> str:
    return _section("quote", [
        f"<blockquote>{_t(c.quote)}</blockquote>",
        f'<p class="author">— {_t(c.author)}</p>',
    ])


def render_thank_you() -> str:
    return _section("thank-you", [
        "<h2>THANK YOU</h2>",
        "<p>Your journey to sales excellence starts today</p>",
        "<p>Ready to get started? Let's connect!</p>",
    ])


def render_presentation(content: "SlideContent") -> str:
    """Render the whole deck as one markup string, slides in fixed order."""
    has_announcement = bool(content.announcement_title.strip())
    slides = [
        render_title(content),
        render_overview(has_announcement),
        render_tip(content),
        render_tip_continuation(content),
        render_selling_tip(content),
        render_featured_service(content),
        render_faq(content),
    ]
    if has_announcement:
        slides.append(render_announcement(content))
    slides.append(render_quote(content))
    slides.append(render_thank_you())
    return "\n".join(slides)

"""Render the emails sent after a draw."""
import html
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

_TAG_RE = re.compile(r"<[^>]*>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def full_image_url(image_path: str | None, base_url: str) -> str | None:
    """
    Turn a stored gift image reference into a link usable from an email.

    Absolute http(s) URLs are returned unchanged; anything else is treated
    as a path on this application and prefixed with base_url.
    """
    if not image_path:
        return None
    if image_path.startswith(("http://", "https://")):
        return image_path
    return f"{base_url.rstrip('/')}/{image_path.lstrip('/')}"


def assignment_email(
    giver_name: str,
    event_name: str,
    receiver_name: str,
    receiver_gift_idea: str | None = None,
    receiver_gift_image: str | None = None,
    base_url: str = "",
) -> tuple[str, str]:
    """
    Build the email telling a giver who they are buying a gift for.

    Returns:
        (subject, html body)
    """
    template = env.get_template("assignment.html")
    body = template.render(
        giver_name=giver_name,
        event_name=event_name,
        receiver_name=receiver_name,
        gift_idea=receiver_gift_idea,
        gift_image=full_image_url(receiver_gift_image, base_url),
    )
    subject = f'Secret Santa "{event_name}" - your mission!'
    return subject, body


def html_to_text(body: str) -> str:
    """Plain-text fallback for an HTML body."""
    text = html.unescape(_TAG_RE.sub("", body))
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()

"""HTML sanitization for free text that ends up in emails and PDF reports."""
import html
from typing import Optional

import bleach


def clean_text(value: Optional[str]) -> Optional[str]:
    """
    Strip all HTML tags from user-supplied text.

    Returns plain text (entities decoded); templates escape it again on output.
    """
    if value is None:
        return None
    return html.unescape(bleach.clean(value, tags=[], strip=True)).strip()


def escape_html(value) -> str:
    """Escape any value for safe interpolation into an HTML template."""
    if value is None:
        return ""
    return bleach.clean(str(value), tags=[], strip=False).replace("\"", "&quot;")

"""
Conversion of HTML post content to plain text.
"""

import re

from bs4 import BeautifulSoup

_HORIZONTAL_WHITESPACE = re.compile(r"[ \t\r\f\v\u00a0]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


def cleanup_html(html: str) -> str:
    """
    Strip tags from HTML content, keeping paragraph breaks.

    Args:
        html: HTML fragment, e.g. from a rich-text editor.

    Returns:
        Plain text with entities unescaped and whitespace collapsed.
    """
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "div", "li", "h1", "h2", "h3", "h4", "h5", "h6"]):
        block.append("\n\n")

    text = soup.get_text()
    lines = [_HORIZONTAL_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()

import os
import re

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

SITE_ROOT = "https://www.bazaraki.com"

# Characters Telegram requires to be escaped in MarkdownV2 text
MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def get_header() -> dict:
    """Default headers sent with every request to the listings site."""
    return {
        "User-Agent": (
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36"
        ),
        "Accept-Language": "en-US,en;q=0.9",
    }


def escape_markdown(text: str) -> str:
    """Escape text for use inside a Telegram MarkdownV2 message."""
    return MARKDOWN_V2_SPECIAL.sub(r"\\\1", text)


def absolute_url(url: str) -> str:
    """Resolve a site-relative path against the listings site root."""
    if not url or url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return f"{SITE_ROOT}/{url.lstrip('/')}"

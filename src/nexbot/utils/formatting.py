"""Telegram HTML formatting helpers."""

from urllib.parse import quote


def escape_html(text: str) -> str:
    """Escape text for Telegram's HTML parse mode."""
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def bold(text: str) -> str:
    return f"<b>{escape_html(text)}</b>"


def italic(text: str) -> str:
    return f"<i>{escape_html(text)}</i>"


def code(text: str) -> str:
    return f"<code>{escape_html(text)}</code>"


def pre(text: str, lang: str | None = None) -> str:
    if lang:
        return f'<pre><code class="language-{lang}">{escape_html(text)}</code></pre>'
    return f"<pre>{escape_html(text)}</pre>"


def link(text: str, url: str) -> str:
    return f'<a href="{url}">{escape_html(text)}</a>'


def mention(user_id: int, name: str) -> str:
    return f'<a href="tg://user?id={user_id}">{escape_html(name)}</a>'


def blockquote(html: str, expandable: bool = False) -> str:
    """Wrap already-formatted HTML in a blockquote. Does not escape."""
    tag = "<blockquote expandable>" if expandable else "<blockquote>"
    return f"{tag}{html}</blockquote>"


def spoiler(text: str) -> str:
    return f'<span class="tg-spoiler">{escape_html(text)}</span>'


def copyable(command: str, prefix: str = "") -> str:
    """A tap-to-copy link for ``prefix + command``."""
    full = prefix + command
    return f'<a href="tg://copy?text={quote(full)}">{code(full)}</a>'


def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def format_uptime(seconds: float) -> str:
    """1d 2h 3m 4s style duration. Zero-valued leading units are omitted."""
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def format_bytes(num: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if abs(num) < 1024:
            return f"{num:.1f}{unit}" if unit != "B" else f"{int(num)}B"
        num /= 1024
    return f"{num:.1f}TB"

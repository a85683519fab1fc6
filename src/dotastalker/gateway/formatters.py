"""
Telegram message formatting utilities.

Renders notification content as Telegram HTML and builds the Game State
Integration config users paste into their game client.
"""

from html import escape

from ..tracker.sink import ContentField, NotificationContent

TELEGRAM_MAX_MESSAGE_CHARS = 4096

# Per-part caps on escaped text; clipping happens before tagging so markup is never cut.
MAX_TITLE_CHARS = 256
MAX_FIELD_NAME_CHARS = 256
MAX_FIELD_VALUE_CHARS = 1024
MAX_FOOTER_CHARS = 2048


def truncate_for_telegram(text: str, max_length: int = TELEGRAM_MAX_MESSAGE_CHARS) -> str:
    """
    Clip plain text (never rendered HTML) to ``max_length`` characters.

    Notifications are edited in place, so they must stay a single message
    rather than being split.

    Examples:
        >>> truncate_for_telegram("Short message")
        'Short message'

        >>> len(truncate_for_telegram("x" * 5000))
        4096
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


def _escape_clipped(text: str, limit: int) -> str:
    """Escape ``text`` for HTML, clipping the raw text until the result fits ``limit``."""
    keep = limit
    while True:
        escaped = escape(truncate_for_telegram(text, keep))
        if len(escaped) <= limit or keep <= 1:
            return escaped
        # One raw character escapes to at most six ("&quot;").
        keep -= max(1, -(-(len(escaped) - limit) // 6))


def _render(title: str, fields: list[ContentField], footer: str) -> str:
    lines = [f"<b>{title}</b>", ""]

    row: list[str] = []
    for field in fields:
        name = _escape_clipped(field.name, MAX_FIELD_NAME_CHARS)
        value = _escape_clipped(field.value, MAX_FIELD_VALUE_CHARS)
        cell = f"<b>{name}:</b> {value}"
        if field.inline:
            row.append(cell)
            continue
        if row:
            lines.append(" | ".join(row))
            row = []
        lines.append(cell)
    if row:
        lines.append(" | ".join(row))

    if footer:
        lines.extend(["", f"<i>{footer}</i>"])
    return "\n".join(lines)


def render_notification(content: NotificationContent) -> str:
    """
    Render notification content as Telegram HTML.

    Inline fields share a line separated by `` | ``; a non-inline field starts
    its own line and ends the current one. Text is clipped before it is
    escaped and tagged; if the message is still over Telegram's limit,
    trailing fields are dropped whole.
    """
    title = _escape_clipped(content.title, MAX_TITLE_CHARS)

    footer = content.footer
    if content.timestamp is not None:
        stamp = content.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
        footer = f"{footer} • {stamp}" if footer else stamp
    footer = _escape_clipped(footer, MAX_FOOTER_CHARS)

    fields = list(content.fields)
    text = _render(title, fields, footer)
    while len(text) > TELEGRAM_MAX_MESSAGE_CHARS and fields:
        fields.pop()
        text = _render(title, fields, footer)
    return text


def format_gsi_config(token: str, uri: str) -> str:
    """Build the ``gamestate_integration_*.cfg`` body for a registered client."""
    return (
        '"Dota Stalker"\n'
        "{\n"
        f'    "uri"           "{uri}"\n'
        '    "timeout"       "5.0"\n'
        '    "buffer"        "0.1"\n'
        '    "throttle"      "0.5"\n'
        '    "heartbeat"     "30.0"\n'
        '    "data"\n'
        "    {\n"
        '        "provider"  "1"\n'
        '        "map"       "1"\n'
        '        "player"    "1"\n'
        '        "hero"      "1"\n'
        "    }\n"
        '    "auth"\n'
        "    {\n"
        f'        "token"     "{token}"\n'
        "    }\n"
        "}"
    )

from __future__ import annotations

import re
from typing import Iterable


TELEGRAM_MESSAGE_LIMIT = 4096


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> Iterable[str]:
    if len(text) <= limit:
        yield text
        return

    chunk = ""
    for line in text.split("\n"):
        candidate = line if not chunk else f"{chunk}\n{line}"
        if len(candidate) <= limit:
            chunk = candidate
            continue

        if chunk:
            yield chunk
            chunk = ""

        if len(line) <= limit:
            chunk = line
            continue

        for i in range(0, len(line), limit):
            yield line[i : i + limit]

    if chunk:
        yield chunk


def strip_bot_mention(text: str, bot_username: str) -> str | None:
    """Rewrite ``/cmd@bot_username rest`` to ``/cmd rest``.

    Returns None when the command is addressed to a different bot. Text that is
    not an addressed command comes back unchanged.
    """
    match = re.match(r"^(/\S+?)@(\w+)(?=\s|$)", text)
    if not match:
        return text
    if not bot_username or match.group(2).lower() != bot_username.lower():
        return None
    return match.group(1) + text[match.end() :]

"""Text normalization for outbound completion requests and inbound replies.

Requests are trimmed, stripped of the bot's own mention (group chat) or the
trigger keyword (private chat), prefixed with the sender's previous exchange,
capped at ``REQUEST_MAX_CHARS`` characters and forced to end in terminal
punctuation so the completion answers instead of continuing the sentence.

Replies drop a leading boilerplate paragraph, fall back to a fixed hint when
nothing is left, and are decorated per scope.
"""

from dataclasses import dataclass

from ..shared.constants import (
    DEFAULT_TERMINAL_MARK,
    EMPTY_REPLY_FALLBACK,
    GROUP_REPLY_SEPARATOR,
    JOIN_GROUP_INVITE_MARK,
    JOIN_GROUP_JOINED_MARK,
    PARAGRAPH_SEPARATOR,
    REQUEST_MAX_CHARS,
    TERMINAL_PUNCTUATION,
    WELCOME_PREFIX,
)

__all__ = (
    "GroupDecoration",
    "PrivateDecoration",
    "build_reply",
    "build_request",
    "build_welcome_text",
    "clean_reply",
    "strip_self_mention",
)


def strip_self_mention(text: str, self_mention: str | None) -> str:
    if self_mention:
        text = text.replace(f"@{self_mention}", "")
    return text.strip()


def build_request(
    raw_text: str,
    prior_context: str = "",
    *,
    self_mention: str | None = None,
    strip_token: str | None = None,
    max_chars: int = REQUEST_MAX_CHARS,
) -> str:
    """Return the prompt to send, or ``""`` when there is nothing to ask."""
    text = strip_self_mention(raw_text, self_mention)
    if strip_token:
        text = text.replace(strip_token, "", 1).strip()
    if not text:
        return ""
    if prior_context:
        text = f"{prior_context}\n{text}"
    if len(text) > max_chars:
        text = text[:max_chars]
    if text[-1] not in TERMINAL_PUNCTUATION:
        if len(text) >= max_chars:
            text = text[: max_chars - 1]
        text += DEFAULT_TERMINAL_MARK
    return text


def clean_reply(raw_reply: str) -> str:
    paragraphs = raw_reply.split(PARAGRAPH_SEPARATOR)
    if len(paragraphs) > 1:
        # Character-set strip, not prefix removal: any character of the first
        # paragraph is also eaten from the end of the reply.
        raw_reply = raw_reply.strip(paragraphs[0])
    return raw_reply.strip()


@dataclass(slots=True, frozen=True)
class PrivateDecoration:
    prefix: str = ""

    def fallback(self) -> str:
        return EMPTY_REPLY_FALLBACK

    def apply(self, body: str) -> str:
        return f"{self.prefix}\n{body}"


@dataclass(slots=True, frozen=True)
class GroupDecoration:
    nickname: str
    question: str

    @property
    def mention(self) -> str:
        return f"@{self.nickname}"

    def fallback(self) -> str:
        return f"{self.mention} {EMPTY_REPLY_FALLBACK}"

    def apply(self, body: str) -> str:
        return f"{self.mention}\n{self.question}{GROUP_REPLY_SEPARATOR}{body}"


def build_reply(raw_reply: str, decoration: PrivateDecoration | GroupDecoration) -> str:
    body = clean_reply(raw_reply)
    if not body:
        return decoration.fallback()
    return decoration.apply(body).strip("\n")


def build_welcome_text(content: str) -> str | None:
    segments = content.split(JOIN_GROUP_INVITE_MARK)
    if len(segments) < 2:
        return None
    name = segments[1].split(JOIN_GROUP_JOINED_MARK)[0]
    return "/".join(p for p in (WELCOME_PREFIX, name, JOIN_GROUP_JOINED_MARK) if p)

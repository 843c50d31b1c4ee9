import threading
from collections.abc import MutableMapping
from dataclasses import dataclass

from cachetools import LRUCache

__all__ = ("ConversationContext", "SessionStore", "make_identity")


def make_identity(user_id: str, group_id: str | None = None) -> str:
    if group_id:
        return f"group:{group_id}:{user_id}"
    return f"user:{user_id}"


@dataclass(slots=True, frozen=True)
class ConversationContext:
    request_text: str
    reply_text: str

    def render(self) -> str:
        return f"{self.request_text}\n{self.reply_text}"


class SessionStore:
    """Last exchange per sender identity, used as context for the next request.

    ``max_entries`` of 0 keeps every identity for the process lifetime; a
    positive value bounds the store with least-recently-used eviction.
    """

    def __init__(self, max_entries: int = 0):
        self._records: MutableMapping[str, ConversationContext]
        if max_entries > 0:
            self._records = LRUCache(maxsize=max_entries)
        else:
            self._records = {}
        self._lock = threading.Lock()

    def get(self, identity: str) -> str:
        with self._lock:
            record = self._records.get(identity)
        return record.render() if record else ""

    def put(self, identity: str, request_text: str, reply_text: str) -> None:
        record = ConversationContext(request_text=request_text, reply_text=reply_text)
        with self._lock:
            self._records[identity] = record

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._records

API_TIMEOUT = 60
API_MAX_RETRIES = 3
REQUEST_TIMEOUT = 120

WS_RECONNECT_DELAY = 5.0
RECEIVE_TIMEOUT = 10

STREAM_DEDUP_CACHE_MAX = 500
STREAM_DEDUP_CACHE_TTL = 3600
IDENTITY_LOCK_CACHE_MAX = 5000
IDENTITY_LOCK_TTL = 3600

OPENAI_MAX_CONCURRENCY = 4

STREAM_WORKERS = 8
STREAM_QUEUE_MAX = 1000
STREAM_QUEUE_PUT_TIMEOUT = 1.0

REQUEST_MAX_CHARS = 4000
TERMINAL_PUNCTUATION = ",.;!?，。！？、…"
DEFAULT_TERMINAL_MARK = "？"
PARAGRAPH_SEPARATOR = "\n\n"
GROUP_REPLY_SEPARATOR = "\n --------------------------------\n"

EMPTY_REPLY_FALLBACK = "请求得不到任何有意义的回复，请具体提出问题。"
COMPLETION_ERROR_TEMPLATE = "gpt request error: {error}"
WELCOME_PREFIX = "让我们热烈欢迎👏🏻"
JOIN_GROUP_INVITE_MARK = "邀请"
JOIN_GROUP_JOINED_MARK = "加入了群聊"

HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429

GATEWAY_MAX_CONCURRENCY = 20

USER_AGENT = "ChatRelay/1.0"
WS_HEARTBEAT = 30
WS_RECONNECT_MAX_DELAY = 60.0

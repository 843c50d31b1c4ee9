__all__ = (
    "ChatRelayError",
    "ConfigurationError",
    "AuthenticationError",
    "APIConnectionError",
    "ClientConnectorError",
    "APIRateLimitError",
    "APIBadRequestError",
    "GatewayConnectionError",
    "GatewayReconnectError",
    "IdentityResolutionError",
)


class ChatRelayError(Exception):
    """Base error"""


class ConfigurationError(ChatRelayError):
    """Configuration error"""


class AuthenticationError(ChatRelayError):
    """Authentication error"""


class APIConnectionError(ChatRelayError):
    """API connection error"""


class ClientConnectorError(APIConnectionError):
    """Connection could not be established; the request was never sent"""


class APIRateLimitError(ChatRelayError):
    """API rate limit error"""


class APIBadRequestError(ChatRelayError):
    """API bad request error"""


class GatewayConnectionError(ChatRelayError):
    """Gateway WebSocket connection error"""


class GatewayReconnectError(GatewayConnectionError):
    """Gateway WebSocket reconnect error"""


class IdentityResolutionError(ChatRelayError):
    """Sender or group could not be resolved from an event"""

from .gateway_api import GatewayAPI
from .streaming import EventStream

__all__ = ("EventStream", "GatewayAPI")

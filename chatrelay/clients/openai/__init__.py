from .openai_api import OpenAIAPI

__all__ = ("OpenAIAPI",)

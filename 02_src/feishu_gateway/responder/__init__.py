"""Responder module."""

from .llm_provider import ILLMProvider, LLMProvider
from .responders import EchoResponder, LLMResponder

__all__ = ["EchoResponder", "ILLMProvider", "LLMProvider", "LLMResponder"]

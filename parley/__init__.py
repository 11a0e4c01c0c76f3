"""parley -- conversational client for OpenAI-compatible chat endpoints."""

from parley.llm.client import ChatClient, ClientConfig

__version__ = "0.1.0"

__all__ = ["ChatClient", "ClientConfig", "__version__"]

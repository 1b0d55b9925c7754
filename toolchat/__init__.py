"""toolchat — an LLM agent loop with a fixed catalogue of HTTP-backed tools."""
__version__ = "0.1.0"

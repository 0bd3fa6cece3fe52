"""HTTP surface for the LiveLLM stream protocol.

``create_app`` builds the FastAPI application; ``SSEWriter`` is usable
on its own from any framework that can stream strings.
"""

from livellm.server.app import create_app
from livellm.server.sse import SSE_HEADERS, SSEWriter, format_action_as_message

__all__ = ["SSE_HEADERS", "SSEWriter", "create_app", "format_action_as_message"]

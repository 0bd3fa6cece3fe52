"""Token sources that feed stream sessions."""

from livellm.providers.litellm_source import COMPONENT_SYSTEM_PROMPT, LiteLLMTokenSource

__all__ = ["COMPONENT_SYSTEM_PROMPT", "LiteLLMTokenSource"]

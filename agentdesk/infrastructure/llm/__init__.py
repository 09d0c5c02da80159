from agentdesk.infrastructure.llm.litellm_stream import LiteLLMStreamClient, resolve_model_name

__all__ = ["LiteLLMStreamClient", "resolve_model_name"]

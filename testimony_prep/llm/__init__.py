"""
LLM Module
==========

Client for the case.dev chat-completions gateway.

Environment Variables:
- CASEDEV_API_KEY: Required for generation and practice
- CASEDEV_LLM_BASE_URL: Gateway base URL (default: https://api.case.dev/llm/v1)

Usage:
    from testimony_prep.llm import CaseDevLLMClient

    client = CaseDevLLMClient(api_key=key, model="casemark/casemark-core-1")
    result = await client.call(messages)
"""

from .client import CaseDevLLMClient, LLMCallResult, LLMClientError

__all__ = [
    "CaseDevLLMClient",
    "LLMCallResult",
    "LLMClientError",
]

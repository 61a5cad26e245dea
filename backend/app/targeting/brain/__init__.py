"""
AI boundary: the element-guess prompt, the decoded response union and the
provider gateway.
"""

from .ai_gateway import AIGateway, AIProvider, AIRequest, AIResponse
from .responses import ElementFound, ElementNotFound, AIElementResponse, decode, output_schema
from .prompts import build_element_prompt

__all__ = [
    "AIGateway",
    "AIProvider",
    "AIRequest",
    "AIResponse",
    "ElementFound",
    "ElementNotFound",
    "AIElementResponse",
    "decode",
    "output_schema",
    "build_element_prompt",
]

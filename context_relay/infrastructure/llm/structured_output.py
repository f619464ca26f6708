"""
JSON-object calls against an injected langchain-core chat model
"""

from typing import Dict, Any, Optional
import asyncio
import json
import re

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(content: Any) -> Dict[str, Any]:
    """Parse model text into a JSON object; raises ValueError otherwise"""

    if isinstance(content, list):
        # Content blocks: keep the text parts
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )

    if not isinstance(content, str) or not content.strip():
        raise ValueError("Empty response from model")

    text = _FENCE.sub("", content.strip())

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model returned malformed JSON: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise ValueError("Model returned JSON that is not an object")

    return parsed


async def invoke_json(
    llm: BaseChatModel,
    system_prompt: str,
    user_prompt: str,
    model_kwargs: Optional[Dict[str, Any]] = None,
    timeout_s: Optional[float] = None
) -> Dict[str, Any]:
    """Send one system+user exchange and return the parsed JSON object"""

    runnable = llm.bind(**model_kwargs) if model_kwargs else llm
    call = runnable.ainvoke([
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_prompt),
    ])

    response = await asyncio.wait_for(call, timeout=timeout_s) if timeout_s else await call

    return parse_json_object(getattr(response, "content", response))

"""Tool-call repair for providers that report calls only in response metadata.

Some OpenAI-compatible proxies leave `tool_calls` empty on the message and
echo the request as a `function_call`, a `tool_call` or a raw `tool_calls`
list in the provider fields instead.
"""

import json
from typing import Any

from cuid2 import cuid_wrapper

from worldsmith.models.messages import Message, ToolCall
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


def repair_tool_calls(message: Message) -> Message:
    """Fill `message.tool_calls` from provider metadata when it is empty.

    Mutates and returns the message. Messages that already carry tool calls
    are left untouched.
    """
    if message.role != "assistant" or message.tool_calls:
        return message

    records = _metadata_records(message.metadata)
    repaired = [call for call in (_to_tool_call(record) for record in records) if call is not None]
    if repaired:
        logger.info(f"Repaired {len(repaired)} tool call(s) from provider metadata: {[c.name for c in repaired]}")
        message.tool_calls = repaired
    return message


def _metadata_records(metadata: dict[str, Any]) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    raw_calls = metadata.get("tool_calls")
    if isinstance(raw_calls, list):
        records.extend(record for record in raw_calls if isinstance(record, dict))
    for key in ("function_call", "tool_call"):
        record = metadata.get(key)
        if isinstance(record, dict):
            records.append(record)
    return records


def _to_tool_call(record: dict[str, Any]) -> ToolCall | None:
    # OpenAI nests name/arguments under "function"
    function = record.get("function") if isinstance(record.get("function"), dict) else record
    name = function.get("name")
    if not isinstance(name, str) or not name:
        logger.warning(f"Ignoring tool call record without a name: {record}")
        return None

    raw_arguments = function.get("arguments", function.get("args", {}))
    arguments = _decode_arguments(raw_arguments, name)
    call_id = record.get("id") or record.get("call_id")
    if not isinstance(call_id, str) or not call_id:
        call_id = f"call_{cuid()}"
    return ToolCall(name=name, arguments=arguments, id=call_id)


def _decode_arguments(raw: Any, name: str) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Could not decode arguments for tool {name}: {raw[:100]}")
            return {}
        if isinstance(decoded, dict):
            return decoded
    logger.warning(f"Unexpected argument payload for tool {name}: {raw!r}")
    return {}

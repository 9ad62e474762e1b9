"""Chat model client and the parser chain that extracts function calls from replies."""

from __future__ import annotations

import json
import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib import error, request

from maintenance_orchestrator.config.settings import Settings
from maintenance_orchestrator.errors import ExternalCapabilityError

logger = logging.getLogger(__name__)

TOOL_CALL_MARKER = re.compile(r"<tool_call>\s*(\{.*?\})\s*</tool_call>", re.DOTALL)


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: dict[str, Any]
    call_id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")


@dataclass(frozen=True)
class ModelReply:
    content: str | None
    function_calls: list[FunctionCall] = field(default_factory=list)


class ChatModel(Protocol):
    """One request/response exchange with a function-calling model.

    ``messages`` use the neutral transcript shape built by the orchestrator:
    ``system``/``user`` messages, ``assistant`` messages that may carry
    ``function_calls``, and ``function_result`` messages.
    """

    def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelReply: ...


# Reply parsing


def _decode_arguments(raw: Any, *, function_name: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExternalCapabilityError(
                f"Malformed arguments for function call '{function_name}'"
            ) from exc
        if isinstance(parsed, dict):
            return parsed
    raise ExternalCapabilityError(f"Arguments for function call '{function_name}' are not an object")


def _call_from_payload(payload: Any, *, call_id: str | None = None) -> FunctionCall:
    if not isinstance(payload, dict):
        raise ExternalCapabilityError("Function call payload is not an object")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        raise ExternalCapabilityError("Function call payload is missing a name")
    arguments = _decode_arguments(payload.get("arguments"), function_name=name)
    if call_id:
        return FunctionCall(name=name, arguments=arguments, call_id=call_id)
    return FunctionCall(name=name, arguments=arguments)


def parse_tool_calls(message: dict[str, Any]) -> list[FunctionCall]:
    calls = []
    for item in message.get("tool_calls") or []:
        if not isinstance(item, dict):
            raise ExternalCapabilityError("Malformed tool call entry")
        calls.append(_call_from_payload(item.get("function"), call_id=item.get("id")))
    return calls


def parse_legacy_function_call(message: dict[str, Any]) -> list[FunctionCall]:
    payload = message.get("function_call")
    if not payload:
        return []
    return [_call_from_payload(payload)]


def parse_text_markers(message: dict[str, Any]) -> list[FunctionCall]:
    content = message.get("content")
    if not isinstance(content, str) or "<tool_call>" not in content:
        return []
    calls = []
    for raw in TOOL_CALL_MARKER.findall(content):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExternalCapabilityError("Malformed <tool_call> block in model reply") from exc
        calls.append(_call_from_payload(payload))
    if not calls:
        raise ExternalCapabilityError("Unterminated <tool_call> block in model reply")
    return calls


FUNCTION_CALL_PARSERS: tuple[Callable[[dict[str, Any]], list[FunctionCall]], ...] = (
    parse_tool_calls,
    parse_legacy_function_call,
    parse_text_markers,
)


def parse_reply(message: dict[str, Any]) -> ModelReply:
    """Reduce any supported reply format to a single ``ModelReply``."""
    content = message.get("content")
    for parser in FUNCTION_CALL_PARSERS:
        calls = parser(message)
        if calls:
            if parser is parse_text_markers:
                content = TOOL_CALL_MARKER.sub("", content).strip() or None
            return ModelReply(content=content, function_calls=calls)
    return ModelReply(content=content if isinstance(content, str) else None)


# OpenAI-compatible client


class OpenAIChatModel:
    """Chat completions client speaking the OpenAI tools protocol."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30.0,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelReply:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": to_wire_messages(messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        response_json = self._request(payload)
        choices = response_json.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise ExternalCapabilityError("Model response did not contain choices")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise ExternalCapabilityError("Model response did not contain a message")
        return parse_reply(message)

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers=headers,
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            logger.warning(
                "llm_request event=failed model=%s status=%s", self.model, exc.code
            )
            raise ExternalCapabilityError(
                f"Model request failed with status {exc.code}: {message[:400]}"
            ) from exc
        except (error.URLError, TimeoutError) as exc:
            logger.warning("llm_request event=failed model=%s reason=%s", self.model, exc)
            raise ExternalCapabilityError(f"Model request failed: {exc}") from exc

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ExternalCapabilityError("Model returned non-JSON response") from exc


def to_wire_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Translate the neutral transcript into chat-completions messages."""
    wire: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        if role == "assistant" and message.get("function_calls"):
            wire.append(
                {
                    "role": "assistant",
                    "content": message.get("content"),
                    "tool_calls": [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in message["function_calls"]
                    ],
                }
            )
        elif role == "function_result":
            wire.append(
                {
                    "role": "tool",
                    "tool_call_id": message["call_id"],
                    "content": message["content"],
                }
            )
        else:
            wire.append({"role": role, "content": message.get("content") or ""})
    return wire


def build_chat_model(settings: Settings) -> ChatModel | None:
    if settings.llm_provider.lower() != "openai":
        logger.warning("llm_config event=unsupported_provider provider=%s", settings.llm_provider)
        return None
    if not settings.llm_configured():
        return None
    return OpenAIChatModel(
        api_key=settings.resolved_openai_api_key(),
        model=settings.llm_model,
        base_url=settings.resolved_llm_base_url(),
        timeout_s=settings.llm_timeout_s,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )

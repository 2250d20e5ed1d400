"""
Agent app services

Career agent built on the OpenAI Responses API. Each turn:
- sends the conversation history, a profile snapshot and the tool catalogue
- asks the model for JSON {"reply", "tool_calls": [{"tool", "arguments"}]}
- runs the requested tools against the user's profile document
- returns the reply, tool results and token usage

Designed to run inside the Django-Q task in ``agent.tasks``.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from django.conf import settings
from openai import OpenAI

from profiles.services import ProfileService
from .career_tools import TOOLS, execute_tool

logger = logging.getLogger(__name__)


class CareerAgentError(Exception):
    """
    Domain-specific exception for career agent failures.
    """


@dataclass
class AgentTurnResult:
    reply: str
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    token_usage: Dict[str, int] = field(default_factory=dict)
    run_id: str = ""

    @property
    def words_generated(self) -> int:
        return len(self.reply.split())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "tool_results": self.tool_results,
            "token_usage": self.token_usage,
            "run_id": self.run_id,
            "words_generated": self.words_generated,
        }


class CareerAgentService:
    """
    Service that runs one career agent turn against the OpenAI Responses API.
    """

    INSTRUCTIONS = (
        "You are a career assistant helping a user keep an accurate record of their "
        "career: experiences, education, projects and the work done on them.\n"
        "Respond with a JSON object: {\"reply\": string, \"tool_calls\": "
        "[{\"tool\": string, \"arguments\": object}]}.\n"
        "Only call tools listed in `tools`, with the argument names they declare.\n"
        "Before calling an add tool, make sure every required field is known. If one "
        "is missing, ask the user for it in `reply` and return no tool calls.\n"
        "Use the profile snapshot to find ids of existing experiences and projects.\n"
        "When the user describes work on a project, record it with add-project-work "
        "covering the work, decisions, results and learnings they mention.\n"
        "Keep `reply` short, friendly and specific."
    )

    TEMPERATURE = 0.3
    MAX_OUTPUT_TOKENS = 1500
    MAX_TOOL_CALLS = 10

    def __init__(self):
        """
        Initialize service with API configuration.
        """
        self.api_key = os.environ.get("OPENAI_API_KEY") or getattr(settings, "OPENAI_API_KEY", "")
        if not self.api_key:
            raise CareerAgentError("OPENAI_API_KEY is not configured.")

        self.model = os.environ.get("OPENAI_MODEL") or getattr(
            settings,
            "OPENAI_MODEL",
            "gpt-4o-mini",
        )
        self.max_history = int(getattr(settings, "CAREER_AGENT_MAX_HISTORY", 20))
        self.client = OpenAI(api_key=self.api_key)

    # --------------------------------------------------------------------- #
    # Public helpers                                                        #
    # --------------------------------------------------------------------- #

    def run_turn(self, user, history: List[Dict[str, Any]], message: str) -> Dict[str, Any]:
        """
        Run one agent turn.

        Args:
            user: User whose profile the tools operate on
            history: Previous conversation messages ({role, content})
            message: The new user message

        Returns:
            Dictionary with reply, tool_results, token_usage, run_id and
            words_generated
        """
        message = (message or "").strip()
        if not message:
            raise CareerAgentError("Message cannot be empty.")

        payload = self.build_payload(user, history, message)
        response_json, run_id, usage = self._call_openai_json(
            instructions=self.INSTRUCTIONS,
            payload=payload,
            temperature=self.TEMPERATURE,
            max_output_tokens=self.MAX_OUTPUT_TOKENS,
        )

        reply = response_json.get("reply")
        if not isinstance(reply, str):
            reply = ""
        tool_calls = response_json.get("tool_calls") or []
        if not isinstance(tool_calls, list):
            logger.warning("Ignoring malformed tool_calls: %s", tool_calls)
            tool_calls = []

        tool_results = self.run_tool_calls(user, tool_calls[: self.MAX_TOOL_CALLS])
        if not reply:
            reply = self._fallback_reply(tool_results)

        return AgentTurnResult(
            reply=reply.strip(),
            tool_results=tool_results,
            token_usage=usage,
            run_id=run_id,
        ).to_dict()

    def build_payload(self, user, history: List[Dict[str, Any]], message: str) -> Dict[str, Any]:
        recent = [
            {"role": entry.get("role"), "content": entry.get("content")}
            for entry in (history or [])[-self.max_history:]
            if isinstance(entry, dict) and entry.get("role") in ("user", "assistant")
        ]
        return {
            "conversation": recent,
            "message": message,
            "profile": ProfileService.initialize_filtered_data(user),
            "tools": [tool.to_prompt_dict() for tool in TOOLS.values()],
        }

    @staticmethod
    def run_tool_calls(user, tool_calls: List[Any]) -> List[Dict[str, Any]]:
        results = []
        for call in tool_calls:
            if not isinstance(call, dict):
                continue
            name = call.get("tool") or call.get("name") or ""
            arguments = call.get("arguments") or {}
            result = execute_tool(user, name, arguments)
            if not result.get("success"):
                logger.info("Career tool %s failed: %s", name, result.get("error"))
            results.append({"tool": name, "arguments": arguments, "result": result})
        return results

    # --------------------------------------------------------------------- #
    # Internal helpers                                                      #
    # --------------------------------------------------------------------- #

    def _fallback_reply(self, tool_results: List[Dict[str, Any]]) -> str:
        messages = [
            entry["result"].get("message") or entry["result"].get("error") or ""
            for entry in tool_results
        ]
        messages = [text for text in messages if text]
        return " ".join(messages) or "Sorry, I could not work out what to do with that."

    def _call_openai_json(
        self,
        *,
        instructions: str,
        payload: Dict[str, Any],
        temperature: float,
        max_output_tokens: int,
    ) -> Tuple[Dict[str, Any], str, Dict[str, int]]:
        request_params: Dict[str, Any] = {
            "model": self.model,
            "instructions": instructions,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_text",
                            "text": f"Return response in JSON format:\n\n{json.dumps(payload, ensure_ascii=True, indent=2)}",
                        }
                    ],
                }
            ],
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
            "text": {"format": {"type": "json_object"}},
        }

        try:
            response = self.client.responses.create(**request_params)
        except Exception as exc:  # noqa: BLE001
            raise CareerAgentError(f"OpenAI request failed: {exc}") from exc

        payload_dict = self._extract_response_json(response)
        usage = self._extract_usage(response)
        run_id = getattr(response, "id", "")
        return payload_dict, run_id, usage

    def _extract_response_json(self, response: Any) -> Dict[str, Any]:
        output_text_parts: List[str] = []
        for item in getattr(response, "output", []) or []:
            for block in getattr(item, "content", []) or []:
                if getattr(block, "type", None) == "output_text":
                    output_text_parts.append(getattr(block, "text", ""))

        raw_payload = "".join(output_text_parts).strip()

        # SDK convenience property fallback
        if not raw_payload and hasattr(response, "output_text"):
            raw_payload = (getattr(response, "output_text", "") or "").strip()

        if not raw_payload:
            raise CareerAgentError("Received empty response from OpenAI.")

        fenced = re.search(r"```(?:json)?\s*(.*?)```", raw_payload, re.DOTALL)
        if fenced:
            raw_payload = fenced.group(1).strip()

        if not raw_payload.startswith("{"):
            json_start = raw_payload.find("{")
            if json_start > 0:
                logger.warning("Stripping non-JSON prefix: %s", raw_payload[:json_start][:100])
                raw_payload = raw_payload[json_start:]

        try:
            parsed = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            end = raw_payload.rfind("}")
            if end == -1:
                raise CareerAgentError(f"Failed to parse OpenAI JSON payload: {exc.msg}") from exc
            trimmed = re.sub(r",(\s*[\]\}])", r"\1", raw_payload[: end + 1])
            try:
                parsed = json.loads(trimmed)
            except json.JSONDecodeError as exc2:
                logger.error(
                    "JSON decode error at line %s col %s: %s. Payload preview: %s",
                    exc2.lineno,
                    exc2.colno,
                    exc2.msg,
                    raw_payload[:500],
                )
                raise CareerAgentError(f"Failed to parse OpenAI JSON payload: {exc2.msg}") from exc2

        if not isinstance(parsed, dict):
            raise CareerAgentError("OpenAI returned JSON that is not an object.")
        return parsed

    def _extract_usage(self, response: Any) -> Dict[str, int]:
        usage = getattr(response, "usage", None)
        if not usage:
            return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
        prompt = getattr(usage, "input_tokens", 0)
        completion = getattr(usage, "output_tokens", 0)
        total = getattr(usage, "total_tokens", 0) or (prompt + completion)
        return {
            "prompt_tokens": int(prompt or 0),
            "completion_tokens": int(completion or 0),
            "total_tokens": int(total or 0),
        }


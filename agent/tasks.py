"""
Background tasks for the agent app using Django-Q.
"""
import logging
import traceback
from typing import List

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from .models import AgentTurn
from .services import CareerAgentError, CareerAgentService

logger = logging.getLogger(__name__)


def _format_debug_entries(entries: List[str]) -> str:
    return "\n".join(entries)


def _mark_failed(turn_id: int, message: str, debug_entries: List[str]) -> None:
    with transaction.atomic():
        try:
            turn = AgentTurn.objects.select_for_update().get(id=turn_id)
        except AgentTurn.DoesNotExist:
            logger.warning("Agent turn %s disappeared during failure handling.", turn_id)
            return
        turn.status = AgentTurn.Status.FAILED
        turn.error_message = message
        turn.debug_log = _format_debug_entries(debug_entries)
        turn.completed_at = timezone.now()
        turn.save(update_fields=["status", "error_message", "debug_log", "completed_at", "updated_at"])


def process_agent_turn(turn_id: int) -> None:
    """
    Background task that runs one career agent turn.

    Safe to re-run: turns already processing or completed are skipped.
    Can be called directly or queued via Django-Q's async_task().
    """
    debug_entries: List[str] = []

    def log_debug(message: str) -> None:
        entry = f"[{timezone.now().isoformat()}] {message}"
        debug_entries.append(entry)
        logger.info("Agent turn %s: %s", turn_id, message)

    try:
        with transaction.atomic():
            turn = (
                AgentTurn.objects.select_for_update()
                .select_related("conversation", "conversation__user")
                .get(id=turn_id)
            )

            if turn.status == AgentTurn.Status.PROCESSING:
                log_debug("Turn already processing; skipping duplicate task.")
                return

            if turn.status == AgentTurn.Status.COMPLETED:
                log_debug("Turn already completed; no action required.")
                return

            turn.status = AgentTurn.Status.PROCESSING
            turn.error_message = ""
            turn.completed_at = None
            turn.save(update_fields=["status", "error_message", "completed_at", "updated_at"])

        conversation = turn.conversation
        user: User = conversation.user
        history = list(conversation.messages or [])

        log_debug(f"Running agent with {len(history)} previous messages.")
        service = CareerAgentService()
        result = service.run_turn(user, history, turn.user_message)

        tool_results = result.get("tool_results", [])
        for entry in tool_results:
            outcome = "ok" if entry["result"].get("success") else entry["result"].get("error")
            log_debug(f"Tool {entry['tool']}: {outcome}")

        token_usage = result.get("token_usage", {})
        words_generated = max(0, result.get("words_generated", 0))
        total_tokens = token_usage.get("total_tokens", 0) or (
            token_usage.get("prompt_tokens", 0) + token_usage.get("completion_tokens", 0)
        )
        total_tokens = max(0, total_tokens)

        with transaction.atomic():
            conversation = type(conversation).objects.select_for_update().get(id=conversation.id)
            now = timezone.now().isoformat()
            conversation.messages = list(conversation.messages or []) + [
                {"role": "user", "content": turn.user_message, "created_at": turn.created_at.isoformat()},
                {"role": "assistant", "content": result["reply"], "created_at": now},
            ]
            if not conversation.title:
                conversation.title = turn.user_message[:80]
            conversation.save(update_fields=["messages", "title", "updated_at"])

            turn.reply = result["reply"]
            turn.tool_results = tool_results
            turn.token_usage = {**token_usage, "words_generated": words_generated}
            turn.openai_run_id = result.get("run_id", "")
            turn.status = AgentTurn.Status.COMPLETED
            turn.completed_at = timezone.now()
            log_debug(f"Recording usage: {total_tokens} tokens, {words_generated} words")
            turn.debug_log = _format_debug_entries(debug_entries)
            turn.save(
                update_fields=[
                    "reply",
                    "tool_results",
                    "token_usage",
                    "openai_run_id",
                    "status",
                    "completed_at",
                    "debug_log",
                    "updated_at",
                ]
            )

        user.record_usage(tokens=total_tokens, words=words_generated)

    except CareerAgentError as exc:
        log_debug(f"Agent error: {exc}")
        _mark_failed(turn_id, str(exc), debug_entries)
        return
    except AgentTurn.DoesNotExist:
        log_debug("Agent turn not found; aborting task.")
        return
    except Exception as exc:  # noqa: BLE001
        log_debug(f"Unexpected error: {exc}")
        _mark_failed(turn_id, f"Unexpected error: {exc}", debug_entries + [traceback.format_exc()])
        # Re-raise to let Django-Q know the task failed
        raise

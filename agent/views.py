"""
Agent app views

Career agent conversations. Posting a message checks the token quota,
creates an AgentTurn and queues it for the Django-Q worker.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_q.tasks import async_task
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.utils import check_and_increment_tokens
from journey.exceptions import BusinessRuleViolation, QuotaExceeded
from .models import AgentTurn, CareerConversation
from .serializers import AgentTurnSerializer, CareerConversationSerializer, SendMessageSerializer

logger = logging.getLogger(__name__)


class CareerConversationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for the current user's career agent conversations.

    - GET/POST /api/agent/conversations/
    - GET/DELETE /api/agent/conversations/{id}/
    - POST /api/agent/conversations/{id}/messages/ queues an agent turn
    """

    serializer_class = CareerConversationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return CareerConversation.objects.filter(user=self.request.user)

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    def destroy(self, request, *args, **kwargs):
        self.get_object().delete()
        return Response({'deleted': True})

    @action(detail=True, methods=['post'])
    def messages(self, request, pk=None):
        conversation = self.get_object()
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Lock the conversation so only one request can open a turn at a time
        with transaction.atomic():
            conversation = CareerConversation.objects.select_for_update().get(pk=conversation.pk)
            if conversation.turns.filter(
                status__in=[AgentTurn.Status.PENDING, AgentTurn.Status.PROCESSING]
            ).exists():
                raise BusinessRuleViolation("The agent is still answering the previous message.")

            cost = getattr(settings, 'CAREER_AGENT_TOKEN_COST', 1)
            try:
                check_and_increment_tokens(request.user, cost=cost)
            except PermissionError as exc:
                raise QuotaExceeded(str(exc))

            turn = AgentTurn.objects.create(
                conversation=conversation,
                user_message=serializer.validated_data['message'],
            )

        task_id = async_task('agent.tasks.process_agent_turn', turn.id)
        logger.info("Queued agent turn %s as task %s", turn.id, task_id)

        turn.refresh_from_db()
        return Response(AgentTurnSerializer(turn).data, status=status.HTTP_202_ACCEPTED)


class AgentTurnViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Poll the status of agent turns: GET /api/agent/turns/{id}/
    """

    serializer_class = AgentTurnSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return AgentTurn.objects.filter(conversation__user=self.request.user)

    def retrieve(self, request, *args, **kwargs):
        turn = get_object_or_404(self.get_queryset(), pk=kwargs['pk'])
        _fail_if_stuck(turn)
        return Response(self.get_serializer(turn).data)


def _fail_if_stuck(turn: AgentTurn) -> bool:
    """
    Mark a turn FAILED when it has been processing longer than allowed.
    Returns True if the turn was changed.
    """
    timeout = timedelta(minutes=getattr(settings, 'CAREER_AGENT_PROCESSING_TIMEOUT_MINUTES', 10))
    if turn.status != AgentTurn.Status.PROCESSING or timezone.now() - turn.updated_at <= timeout:
        return False

    logger.error("Agent turn %s exceeded processing timeout.", turn.id)
    turn.status = AgentTurn.Status.FAILED
    turn.error_message = "The agent took too long to answer. Please try again."
    turn.completed_at = timezone.now()
    turn.save(update_fields=['status', 'error_message', 'completed_at', 'updated_at'])
    return True

"""
Node Permission Service Layer
Decides who may view or edit a timeline node and manages the policies that
grant that access.
"""
import logging
from typing import Dict, Iterable, List, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from journey.exceptions import AccessDenied, NotFound
from organizations.models import Organization
from organizations.services import OrganizationService
from timeline.models import TimelineNode
from .models import NodePolicy

logger = logging.getLogger(__name__)

LEVELS = [choice for choice, _ in NodePolicy.Level.choices]
ACTIONS = [choice for choice, _ in NodePolicy.Action.choices]
SUBJECT_TYPES = [choice for choice, _ in NodePolicy.SubjectType.choices]
EFFECTS = [choice for choice, _ in NodePolicy.Effect.choices]


def _user_id(user) -> Optional[int]:
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user.pk


def _is_admin(user) -> bool:
    return bool(_user_id(user)) and getattr(user, 'is_admin', False)


class NodePermissionService:
    """Service for node access checks and policy management."""

    MAX_POLICIES_PER_REQUEST = 100

    # ------------------------------------------------------------------ #
    # Evaluation                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _active_policies():
        now = timezone.now()
        return NodePolicy.objects.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))

    @staticmethod
    def _subject_filter(user_id: Optional[int], org_ids: Iterable[int], include_public: bool = True) -> Q:
        condition = Q(pk__in=[])
        if include_public:
            condition |= Q(subject_type=NodePolicy.SubjectType.PUBLIC)
        if user_id is not None:
            condition |= Q(subject_type=NodePolicy.SubjectType.USER, subject_id=user_id)
        org_ids = list(org_ids)
        if org_ids:
            condition |= Q(subject_type=NodePolicy.SubjectType.ORG, subject_id__in=org_ids)
        return condition

    @staticmethod
    def _matches(policy: NodePolicy, user_id: Optional[int], org_ids: Iterable[int]) -> bool:
        if policy.subject_type == NodePolicy.SubjectType.PUBLIC:
            return True
        if policy.subject_type == NodePolicy.SubjectType.USER:
            return user_id is not None and policy.subject_id == user_id
        return policy.subject_id in org_ids

    @staticmethod
    def _decide(policies: Iterable[NodePolicy], user_id, org_ids, action: str, level: str) -> Optional[bool]:
        """
        Decide access from the policies of one node.

        Returns True or False when a policy applies and None when nothing
        matched. DENY beats ALLOW, and public subjects are never denied.
        """
        allowed = False
        for policy in policies:
            if policy.action != action or policy.level != level:
                continue
            if not NodePermissionService._matches(policy, user_id, org_ids):
                continue
            if policy.effect == NodePolicy.Effect.DENY:
                if policy.subject_type != NodePolicy.SubjectType.PUBLIC:
                    return False
            else:
                allowed = True
        return True if allowed else None

    @staticmethod
    def _load_policies(node_ids: Iterable, user_id, org_ids) -> Dict[str, List[NodePolicy]]:
        policies: Dict[str, List[NodePolicy]] = {}
        queryset = NodePermissionService._active_policies().filter(
            NodePermissionService._subject_filter(user_id, org_ids),
            node_id__in=list(node_ids),
        )
        for policy in queryset:
            policies.setdefault(str(policy.node_id), []).append(policy)
        return policies

    @staticmethod
    def can_access(user, node: TimelineNode, action: str = 'view', level: str = 'overview') -> bool:
        """
        Check whether ``user`` may perform ``action`` on ``node`` at ``level``.

        The owner and admins always can. Anyone else needs an unexpired
        ALLOW policy for exactly that action and level, and no DENY for
        themselves or one of their organizations.
        """
        user_id = _user_id(user)
        if user_id is not None and node.user_id == user_id:
            return True
        if _is_admin(user):
            return True

        org_ids = OrganizationService.get_user_organization_ids(user)
        policies = NodePermissionService._load_policies([node.id], user_id, org_ids)
        decision = NodePermissionService._decide(
            policies.get(str(node.id), []), user_id, org_ids, action, level,
        )
        return bool(decision)

    @staticmethod
    def get_access_level(user, node: TimelineNode) -> Optional[str]:
        if NodePermissionService.can_access(user, node, 'view', NodePolicy.Level.FULL):
            return NodePolicy.Level.FULL.value
        if NodePermissionService.can_access(user, node, 'view', NodePolicy.Level.OVERVIEW):
            return NodePolicy.Level.OVERVIEW.value
        return None

    @staticmethod
    def can_edit(user, node: TimelineNode) -> bool:
        return NodePermissionService.can_access(user, node, 'edit', NodePolicy.Level.FULL)

    @staticmethod
    def _ancestor_chains(nodes: List[TimelineNode]) -> Dict[str, List[str]]:
        """
        Map each node id to its own id followed by its ancestors' ids,
        closest first. Hierarchies never cross owners, so one query per
        owner set is enough.
        """
        owner_ids = {node.user_id for node in nodes}
        parent_map = {
            str(node_id): str(parent_id) if parent_id else None
            for node_id, parent_id in TimelineNode.objects.filter(user_id__in=owner_ids).values_list('id', 'parent_id')
        }
        chains = {}
        for node in nodes:
            key = str(node.id)
            chain = [key]
            parent = parent_map.get(key)
            while parent and parent not in chain:
                chain.append(parent)
                parent = parent_map.get(parent)
            chains[key] = chain
        return chains

    @staticmethod
    def _resolve(chain: List[str], policies: Dict[str, List[NodePolicy]], user_id, org_ids,
                 action: str, level: str) -> bool:
        # The closest node with a matching policy decides
        for node_id in chain:
            decision = NodePermissionService._decide(policies.get(node_id, []), user_id, org_ids, action, level)
            if decision is not None:
                return decision
        return False

    @staticmethod
    def check_hierarchy_access(user, node: TimelineNode, action: str = 'view', level: str = 'overview') -> bool:
        """
        Like ``can_access`` but policies on ancestors also apply.

        The closest node carrying a matching policy decides, so a DENY on a
        child overrides an ALLOW inherited from its parent.
        """
        user_id = _user_id(user)
        if (user_id is not None and node.user_id == user_id) or _is_admin(user):
            return True

        chain = NodePermissionService._ancestor_chains([node])[str(node.id)]
        org_ids = OrganizationService.get_user_organization_ids(user)
        policies = NodePermissionService._load_policies(chain, user_id, org_ids)
        return NodePermissionService._resolve(chain, policies, user_id, org_ids, action, level)

    @staticmethod
    def batch_check_access(user, node_ids: List, action: str = 'view', level: str = 'overview') -> Dict[str, bool]:
        """
        Check many nodes at once, honouring policies inherited from
        ancestors. Unknown or malformed ids map to False.
        """
        NodePermissionService._validate_choice('action', action, ACTIONS)
        NodePermissionService._validate_choice('level', level, LEVELS)

        result = {str(node_id): False for node_id in node_ids}
        valid_ids = []
        for node_id in node_ids:
            try:
                valid_ids.append(TimelineNode._meta.pk.to_python(node_id))
            except ValidationError:
                continue

        nodes = list(TimelineNode.objects.filter(id__in=valid_ids))
        user_id = _user_id(user)
        admin = _is_admin(user)
        org_ids = OrganizationService.get_user_organization_ids(user)
        chains = NodePermissionService._ancestor_chains(nodes)
        policies = NodePermissionService._load_policies(
            {node_id for chain in chains.values() for node_id in chain}, user_id, org_ids,
        )

        by_id = {str(node.id): node for node in nodes}
        for key in result:
            node = by_id.get(key)
            if node is None:
                continue
            if admin or (user_id is not None and node.user_id == user_id):
                result[key] = True
                continue
            result[key] = NodePermissionService._resolve(chains[key], policies, user_id, org_ids, action, level)
        return result

    @staticmethod
    def get_accessible_nodes(user, owner=None) -> List[Dict]:
        """
        Nodes ``user`` can see, optionally restricted to one owner.

        A node is visible through its own policies or through those of an
        ancestor.

        Returns:
            List of ``{"node", "accessLevel", "canEdit"}`` dictionaries
        """
        user_id = _user_id(user)
        admin = _is_admin(user)
        org_ids = OrganizationService.get_user_organization_ids(user)

        if owner is not None:
            candidates = TimelineNode.objects.filter(user=owner)
        else:
            sharing_owners = TimelineNode.objects.filter(
                policies__in=NodePermissionService._active_policies().filter(
                    NodePermissionService._subject_filter(user_id, org_ids),
                    effect=NodePolicy.Effect.ALLOW,
                    action=NodePolicy.Action.VIEW,
                ),
            ).values('user_id')
            candidates = TimelineNode.objects.filter(Q(user_id=user_id) | Q(user_id__in=sharing_owners))
        nodes = list(candidates.order_by('created_at'))

        chains = NodePermissionService._ancestor_chains(nodes)
        policies = NodePermissionService._load_policies(
            {node_id for chain in chains.values() for node_id in chain}, user_id, org_ids,
        )
        accessible = []
        for node in nodes:
            if admin or (user_id is not None and node.user_id == user_id):
                accessible.append({'node': node, 'accessLevel': 'full', 'canEdit': True})
                continue

            chain = chains[str(node.id)]
            level = None
            for candidate in (NodePolicy.Level.FULL, NodePolicy.Level.OVERVIEW):
                if NodePermissionService._resolve(chain, policies, user_id, org_ids, 'view', candidate):
                    level = candidate.value
                    break
            if level is None:
                continue
            can_edit = NodePermissionService._resolve(
                chain, policies, user_id, org_ids, 'edit', NodePolicy.Level.FULL,
            )
            accessible.append({'node': node, 'accessLevel': level, 'canEdit': can_edit})
        return accessible

    # ------------------------------------------------------------------ #
    # Policy management                                                  #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_choice(name: str, value, choices: List[str]) -> None:
        if value not in choices:
            raise ValidationError(f"{name} must be one of: {', '.join(choices)}")

    @staticmethod
    def _ensure_owner(user, node: TimelineNode) -> None:
        if _user_id(user) is None or node.user_id != user.pk:
            raise AccessDenied("Only the node owner can manage its permissions")

    @staticmethod
    def get_node(node_id) -> TimelineNode:
        try:
            return TimelineNode.objects.get(id=node_id)
        except (TimelineNode.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Node {node_id} not found")

    @staticmethod
    def validate_policy(data: Dict, index: int = 0) -> Dict:
        """
        Validate one policy payload (camelCase keys as sent by clients).

        Raises:
            ValidationError: If validation fails
        """
        errors = []
        prefix = f"policies[{index}]"
        if not isinstance(data, dict):
            raise ValidationError(f"{prefix} must be an object")

        level = data.get('level', NodePolicy.Level.OVERVIEW.value)
        action = data.get('action', NodePolicy.Action.VIEW.value)
        subject_type = data.get('subjectType')
        subject_id = data.get('subjectId')
        effect = data.get('effect', NodePolicy.Effect.ALLOW.value)

        if level not in LEVELS:
            errors.append(f"{prefix}.level must be one of: {', '.join(LEVELS)}")
        if action not in ACTIONS:
            errors.append(f"{prefix}.action must be one of: {', '.join(ACTIONS)}")
        if effect not in EFFECTS:
            errors.append(f"{prefix}.effect must be one of: {', '.join(EFFECTS)}")
        if subject_type not in SUBJECT_TYPES:
            errors.append(f"{prefix}.subjectType must be one of: {', '.join(SUBJECT_TYPES)}")
        elif subject_type == NodePolicy.SubjectType.PUBLIC:
            if subject_id is not None:
                errors.append(f"{prefix}.subjectId must be empty for public policies")
        elif isinstance(subject_id, bool) or not isinstance(subject_id, int) or subject_id <= 0:
            errors.append(f"{prefix}.subjectId is required for {subject_type} policies")

        expires_at = data.get('expiresAt')
        if expires_at:
            parsed = parse_datetime(expires_at) if isinstance(expires_at, str) else None
            if parsed is None:
                errors.append(f"{prefix}.expiresAt must be an ISO 8601 datetime")
            else:
                if timezone.is_naive(parsed):
                    parsed = timezone.make_aware(parsed)
                expires_at = parsed

        if errors:
            raise ValidationError(errors)

        return {
            'level': level,
            'action': action,
            'subject_type': subject_type,
            'subject_id': subject_id if subject_type != NodePolicy.SubjectType.PUBLIC else None,
            'effect': effect,
            'expires_at': expires_at or None,
        }

    @staticmethod
    def set_node_policies(owner, node: TimelineNode, policies: List[Dict]) -> List[NodePolicy]:
        """
        Replace every policy on ``node`` with ``policies``.

        Raises:
            AccessDenied: If ``owner`` does not own the node
            ValidationError: If a policy is invalid or there are too many
        """
        NodePermissionService._ensure_owner(owner, node)
        if not isinstance(policies, list):
            raise ValidationError("policies must be a list")
        if len(policies) > NodePermissionService.MAX_POLICIES_PER_REQUEST:
            raise ValidationError(
                f"At most {NodePermissionService.MAX_POLICIES_PER_REQUEST} policies can be set at once"
            )

        cleaned = []
        errors = []
        for index, policy in enumerate(policies):
            try:
                cleaned.append(NodePermissionService.validate_policy(policy, index))
            except ValidationError as exc:
                errors.extend(exc.messages)
        if errors:
            raise ValidationError(errors)

        with transaction.atomic():
            NodePolicy.objects.filter(node=node).delete()
            created = NodePolicy.objects.bulk_create([
                NodePolicy(node=node, granted_by=owner, **data) for data in cleaned
            ])
        logger.info("Set %s policies on node %s", len(created), node.id)
        return created

    @staticmethod
    def get_node_policies(owner, node: TimelineNode) -> List[NodePolicy]:
        NodePermissionService._ensure_owner(owner, node)
        return list(NodePolicy.objects.filter(node=node).order_by('created_at'))

    @staticmethod
    def delete_policy(owner, policy_id, node: Optional[TimelineNode] = None) -> None:
        try:
            policy = NodePolicy.objects.select_related('node').get(id=policy_id)
        except (NodePolicy.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Policy {policy_id} not found")
        if node is not None and policy.node_id != node.id:
            raise NotFound(f"Policy {policy_id} not found")
        NodePermissionService._ensure_owner(owner, policy.node)
        policy.delete()

    @staticmethod
    def effective_permissions(owner, node: TimelineNode) -> Dict:
        """
        Summarize who can view ``node`` and at which level.
        """
        NodePermissionService._ensure_owner(owner, node)
        policies = NodePermissionService._active_policies().filter(
            node=node,
            effect=NodePolicy.Effect.ALLOW,
            action=NodePolicy.Action.VIEW,
        )

        public_level = None
        orgs: Dict[int, str] = {}
        users: Dict[int, str] = {}
        for policy in policies:
            if policy.subject_type == NodePolicy.SubjectType.PUBLIC:
                if public_level is None or policy.level == NodePolicy.Level.FULL:
                    public_level = policy.level
            else:
                bucket = orgs if policy.subject_type == NodePolicy.SubjectType.ORG else users
                if bucket.get(policy.subject_id) != NodePolicy.Level.FULL:
                    bucket[policy.subject_id] = policy.level

        org_names = dict(Organization.objects.filter(id__in=list(orgs)).values_list('id', 'name'))
        user_names = {
            row['id']: row['user_name'] or row['username']
            for row in get_user_model().objects.filter(id__in=list(users)).values('id', 'user_name', 'username')
        }

        return {
            'public': public_level,
            'organizations': [
                {'id': org_id, 'name': org_names.get(org_id), 'level': level}
                for org_id, level in orgs.items()
            ],
            'users': [
                {'id': user_id, 'userName': user_names.get(user_id), 'level': level}
                for user_id, level in users.items()
            ],
        }

    @staticmethod
    def cleanup_expired_policies() -> int:
        deleted, _ = NodePolicy.objects.filter(expires_at__lte=timezone.now()).delete()
        if deleted:
            logger.info("Removed %s expired node policies", deleted)
        return deleted

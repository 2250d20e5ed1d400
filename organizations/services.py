"""
Organization Service Layer
Handles validation and business logic for organizations and membership.
"""
import logging
from typing import Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from journey.exceptions import BusinessRuleViolation, NotFound
from .models import Organization, OrgMember

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service for managing organizations and their members."""

    VALID_TYPES = [choice for choice, _ in Organization.Type.choices]
    MAX_NAME_LENGTH = 255
    MAX_SEARCH_LIMIT = 100

    @staticmethod
    def validate_organization(data: Dict, partial: bool = False) -> Dict:
        """
        Validate organization fields.

        Args:
            data: Dictionary with name, type and metadata
            partial: Only validate the keys that are present

        Returns:
            Cleaned data dictionary

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(data, dict):
            raise ValidationError("organization data must be an object")

        errors = []
        cleaned = {}

        if 'name' in data or not partial:
            name = data.get('name')
            if name is not None and not isinstance(name, str):
                errors.append("name must be a string")
                name = ''
            else:
                name = (name or '').strip()
                if not name:
                    errors.append("name is required")
                elif len(name) > OrganizationService.MAX_NAME_LENGTH:
                    errors.append(f"name must be at most {OrganizationService.MAX_NAME_LENGTH} characters")
            cleaned['name'] = name

        if 'type' in data or not partial:
            org_type = data.get('type')
            if org_type not in OrganizationService.VALID_TYPES:
                errors.append(f"type must be one of: {', '.join(OrganizationService.VALID_TYPES)}")
            cleaned['type'] = org_type

        if 'metadata' in data:
            metadata = data.get('metadata')
            if metadata is None:
                metadata = {}
            if not isinstance(metadata, dict):
                errors.append("metadata must be an object")
            cleaned['metadata'] = metadata

        if errors:
            raise ValidationError(errors)
        return cleaned

    @staticmethod
    def create_organization(data: Dict) -> Organization:
        """
        Create an organization, or return the existing one with the same
        name and type.
        """
        clean_data = OrganizationService.validate_organization(data)
        existing = Organization.objects.filter(
            name__iexact=clean_data['name'],
            type=clean_data['type'],
        ).first()
        if existing:
            return existing

        organization = Organization.objects.create(
            name=clean_data['name'],
            type=clean_data['type'],
            metadata=clean_data.get('metadata', {}),
        )
        logger.info("Created organization %s (%s)", organization.id, organization.name)
        return organization

    @staticmethod
    def get_organization(org_id) -> Organization:
        try:
            return Organization.objects.get(id=org_id)
        except (Organization.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Organization {org_id} not found")

    @staticmethod
    def update_organization(org_id, data: Dict) -> Organization:
        organization = OrganizationService.get_organization(org_id)
        clean_data = OrganizationService.validate_organization(data, partial=True)
        for attr, value in clean_data.items():
            setattr(organization, attr, value)
        organization.save()
        return organization

    @staticmethod
    def delete_organization(org_id) -> None:
        organization = OrganizationService.get_organization(org_id)
        organization.delete()
        logger.info("Deleted organization %s", org_id)

    @staticmethod
    def add_member(org_id, user, role: str = OrgMember.Role.MEMBER) -> OrgMember:
        """
        Add a user to an organization.

        Raises:
            NotFound: If the organization does not exist
            BusinessRuleViolation: If the user is already a member
        """
        organization = OrganizationService.get_organization(org_id)
        if OrgMember.objects.filter(organization=organization, user=user).exists():
            raise BusinessRuleViolation("User is already a member of this organization")
        try:
            with transaction.atomic():
                return OrgMember.objects.create(organization=organization, user=user, role=role)
        except IntegrityError:
            raise BusinessRuleViolation("User is already a member of this organization")

    @staticmethod
    def remove_member(org_id, user) -> None:
        deleted, _ = OrgMember.objects.filter(organization_id=org_id, user=user).delete()
        if not deleted:
            raise NotFound("User is not a member of this organization")

    @staticmethod
    def get_user_organizations(user) -> List[Organization]:
        return list(Organization.objects.filter(members__user=user).order_by('name'))

    @staticmethod
    def get_user_organization_ids(user) -> List[int]:
        if user is None or not getattr(user, 'is_authenticated', False):
            return []
        return list(OrgMember.objects.filter(user=user).values_list('organization_id', flat=True))

    @staticmethod
    def is_member(user, org_id) -> bool:
        return OrgMember.objects.filter(organization_id=org_id, user=user).exists()

    @staticmethod
    def find_or_create_by_name(name: str, org_type: str) -> Organization:
        """
        Find an organization by name and type, creating it when missing.

        Used when importing external profile data that only carries names.
        """
        if not name or not isinstance(name, str) or not name.strip():
            raise ValidationError("Organization name cannot be empty")
        return OrganizationService.create_organization({'name': name.strip(), 'type': org_type})

    @staticmethod
    def get_organization_name_from_node(node) -> Optional[str]:
        """
        Resolve the organization name of a job or education node.

        Prefers ``meta.orgId`` and falls back to the legacy ``company`` and
        ``institution`` meta keys.
        """
        meta = node.meta or {}
        org_id = meta.get('orgId')
        if org_id:
            try:
                return OrganizationService.get_organization(org_id).name
            except NotFound:
                logger.warning("Organization %s referenced by node %s not found", org_id, node.id)

        if node.type == 'job' and meta.get('company'):
            return meta['company']
        if node.type == 'education' and meta.get('institution'):
            return meta['institution']
        return None

    @staticmethod
    def search_organizations(query: str, page: int = 1, limit: int = 10) -> Dict:
        """
        Search organizations by name.

        Returns:
            Dictionary with ``organizations`` and ``pagination`` keys
        """
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or 10), 1), OrganizationService.MAX_SEARCH_LIMIT)

        queryset = Organization.objects.all()
        query = (query or '').strip()
        if query:
            queryset = queryset.filter(name__icontains=query)
        queryset = queryset.order_by('name', 'id')

        total = queryset.count()
        offset = (page - 1) * limit
        organizations = list(queryset[offset:offset + limit])

        return {
            'organizations': organizations,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'hasNext': page * limit < total,
                'hasPrev': page > 1,
            },
        }

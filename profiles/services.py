"""
Profile Service Layer
Handles the curated profile document and onboarding of imported profiles
into timeline nodes.
"""
import copy
import logging
import re
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction

from organizations.models import Organization
from organizations.services import OrganizationService
from timeline.models import TimelineNode
from timeline.services import HierarchyService
from .models import Profile

logger = logging.getLogger(__name__)

# Errors that skip a single imported entry instead of aborting onboarding.
ENTRY_ERRORS = (ValidationError, TypeError, ValueError, AttributeError, KeyError)

MONTH_PATTERN = re.compile(r'^\d{4}-\d{2}$')

# Formats seen in imported profiles, tried in order.
DATE_FORMATS = [
    '%Y-%m-%d',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y/%m/%d',
    '%Y/%m',
    '%m/%d/%Y',
    '%m/%Y',
    '%b %Y',
    '%B %Y',
    '%b %d, %Y',
    '%B %d, %Y',
    '%Y',
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _flatten_title(value) -> Optional[str]:
    if isinstance(value, dict):
        return value.get('name')
    return value


class ProfileService:
    """Service for reading and curating a user's profile document."""

    DOCUMENT_KEYS = {
        'experiences': list,
        'education': list,
        'skills': list,
    }

    @staticmethod
    def get_profile(user) -> Profile:
        profile, created = Profile.objects.get_or_create(
            user=user,
            defaults={'user_name': user.user_name or ''},
        )
        if created:
            logger.info("Created profile for user %s", user.pk)
        return profile

    @staticmethod
    def normalize_document(data: Optional[Dict]) -> Tuple[Dict, bool]:
        """
        Bring a profile document into its canonical shape.

        Returns:
            Tuple of (document, changed)
        """
        changed = False
        document = copy.deepcopy(data) if isinstance(data, dict) else {}
        if not isinstance(data, dict):
            changed = True

        for key, factory in ProfileService.DOCUMENT_KEYS.items():
            if not isinstance(document.get(key), list):
                document[key] = factory()
                changed = True

        for experience in document['experiences']:
            if not isinstance(experience, dict):
                continue
            if not experience.get('id'):
                experience['id'] = _new_id()
                changed = True
            title = _flatten_title(experience.get('title'))
            if title != experience.get('title'):
                experience['title'] = title
                changed = True
            company = _flatten_title(experience.get('company'))
            if company != experience.get('company'):
                experience['company'] = company
                changed = True
            if not isinstance(experience.get('projects'), list):
                experience['projects'] = []
                changed = True
            for project in experience['projects']:
                if isinstance(project, dict) and not project.get('id'):
                    project['id'] = _new_id()
                    changed = True

        return document, changed

    @staticmethod
    def initialize_filtered_data(user) -> Dict:
        """
        Ensure the user's filtered profile document is in canonical shape.

        Only writes to the database when something had to change.
        """
        profile = ProfileService.get_profile(user)
        document, changed = ProfileService.normalize_document(profile.filtered_data)
        if changed:
            profile.filtered_data = document
            profile.save(update_fields=['filtered_data', 'updated_at'])
            logger.debug("Normalized filtered profile data for user %s", user.pk)
        return document

    @staticmethod
    def update_filtered_data(user, data: Dict) -> Dict:
        if not isinstance(data, dict):
            raise ValidationError("filtered_data must be an object")
        document, _ = ProfileService.normalize_document(data)
        profile = ProfileService.get_profile(user)
        profile.filtered_data = document
        profile.save(update_fields=['filtered_data', 'updated_at'])
        return document

    @staticmethod
    def get_profile_stats(user) -> Dict[str, int]:
        document = ProfileService.initialize_filtered_data(user)
        experiences = [exp for exp in document['experiences'] if isinstance(exp, dict)]
        projects = [
            project
            for exp in experiences
            for project in exp.get('projects', [])
            if isinstance(project, dict)
        ]
        return {
            'experienceCount': len(experiences),
            'projectCount': len(projects),
            'updateCount': sum(len(project.get('updates') or []) for project in projects),
            'educationCount': len(document['education']),
            'skillCount': len(document['skills']),
        }


class OnboardingService:
    """Turns an imported profile into timeline nodes."""

    @staticmethod
    def format_date(value) -> Optional[str]:
        """
        Normalize a date string to ``YYYY-MM``.

        Returns:
            The formatted month, or None if the value cannot be parsed
        """
        if not value or not isinstance(value, str):
            return None
        value = value.strip()
        if MONTH_PATTERN.match(value):
            return value

        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return parsed.strftime('%Y-%m')

        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).strftime('%Y-%m')
        except ValueError:
            logger.warning("Could not parse date: %s", value)
            return None

    @staticmethod
    def extract_title(title) -> str:
        if isinstance(title, str) and title.strip():
            return title.strip()
        if isinstance(title, dict) and title.get('name'):
            return title['name']
        return 'Position'

    @staticmethod
    def _clean(meta: Dict) -> Dict:
        return {key: value for key, value in meta.items() if value not in (None, '')}

    @staticmethod
    def create_job_node(user, experience: Dict) -> TimelineNode:
        organization = OrganizationService.find_or_create_by_name(
            experience.get('company') or 'Unknown Company',
            Organization.Type.COMPANY,
        )
        meta = OnboardingService._clean({
            'orgId': organization.id,
            'role': OnboardingService.extract_title(experience.get('title')),
            'location': experience.get('location'),
            'description': experience.get('description'),
            'startDate': OnboardingService.format_date(experience.get('start')),
            'endDate': OnboardingService.format_date(experience.get('end')),
        })
        return HierarchyService.create_node(user, 'job', meta)

    @staticmethod
    def _technologies(value) -> List[str]:
        # Imports carry either a list or one comma separated string
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, list):
            return []
        return [tech.strip() for tech in value if isinstance(tech, str) and tech.strip()]

    @staticmethod
    def create_project_node(user, project: Dict, parent: TimelineNode) -> TimelineNode:
        meta = OnboardingService._clean({
            'title': project.get('title') or 'Project',
            'description': project.get('description'),
            'technologies': OnboardingService._technologies(project.get('technologies')),
            'projectType': 'professional',
            'startDate': OnboardingService.format_date(project.get('start')),
            'endDate': OnboardingService.format_date(project.get('end')),
        })
        return HierarchyService.create_node(user, 'project', meta, parent_id=parent.id)

    @staticmethod
    def create_education_node(user, education: Dict) -> TimelineNode:
        organization = OrganizationService.find_or_create_by_name(
            education.get('school') or 'Unknown Institution',
            Organization.Type.EDUCATIONAL_INSTITUTION,
        )
        meta = OnboardingService._clean({
            'orgId': organization.id,
            'degree': education.get('degree') or 'Degree',
            'field': education.get('field'),
            'location': education.get('location'),
            'description': education.get('description'),
            'startDate': OnboardingService.format_date(education.get('start')),
            'endDate': OnboardingService.format_date(education.get('end')),
        })
        return HierarchyService.create_node(user, 'education', meta)

    @staticmethod
    def _set_names(user, full_name) -> None:
        if not isinstance(full_name, str) or not full_name.strip():
            return
        parts = full_name.split()
        user.first_name = parts[0][:150]
        if len(parts) > 1:
            user.last_name = ' '.join(parts[1:])[:150]
        user.save(update_fields=['first_name', 'last_name'])

    @staticmethod
    def save_profile(user, profile_data: Dict, interest: Optional[str] = None) -> Dict:
        """
        Import a profile for a user and mark onboarding complete.

        Args:
            user: User being onboarded
            profile_data: Dictionary with name, experiences and education
            interest: Optional interest choice recorded on the user

        Returns:
            Dictionary with ``profile`` (the imported or existing data) and
            the created ``nodes``
        """
        if not isinstance(profile_data, dict):
            raise ValidationError("profile data must be an object")

        experiences = profile_data.get('experiences') or []
        education_entries = profile_data.get('education') or []
        if not isinstance(experiences, list) or not isinstance(education_entries, list):
            raise ValidationError("experiences and education must be lists")

        if interest is not None and interest not in user.Interest.values:
            raise ValidationError(f"interest must be one of: {', '.join(user.Interest.values)}")

        if TimelineNode.objects.filter(user=user).exists():
            logger.info("User %s already has timeline nodes, returning existing data", user.pk)
            return {
                'profile': OnboardingService.nodes_to_profile_data(user),
                'nodes': [],
                'alreadyOnboarded': True,
            }

        profile = ProfileService.get_profile(user)
        profile.raw_data = profile_data
        if not profile.filtered_data:
            profile.filtered_data, _ = ProfileService.normalize_document({
                'experiences': experiences,
                'education': education_entries,
                'skills': profile_data.get('skills') or [],
            })
        profile.save()

        OnboardingService._set_names(user, profile_data.get('name'))

        created: List[TimelineNode] = []
        for experience in experiences:
            if not isinstance(experience, dict):
                continue
            try:
                with transaction.atomic():
                    job = OnboardingService.create_job_node(user, experience)
            except ENTRY_ERRORS as exc:
                logger.error("Failed to create job node for user %s: %s", user.pk, exc)
                continue
            created.append(job)

            for project in experience.get('projects') or []:
                if not isinstance(project, dict):
                    continue
                try:
                    with transaction.atomic():
                        created.append(OnboardingService.create_project_node(user, project, job))
                except ENTRY_ERRORS as exc:
                    logger.error("Failed to create project node under %s: %s", job.id, exc)

        for education in education_entries:
            if not isinstance(education, dict):
                continue
            try:
                with transaction.atomic():
                    created.append(OnboardingService.create_education_node(user, education))
            except ENTRY_ERRORS as exc:
                logger.error("Failed to create education node for user %s: %s", user.pk, exc)

        update_fields = ['has_completed_onboarding']
        user.has_completed_onboarding = True
        if interest:
            user.interest = interest
            update_fields.append('interest')
        user.save(update_fields=update_fields)

        logger.info("Onboarded user %s with %s timeline nodes", user.pk, len(created))
        return {'profile': profile_data, 'nodes': created, 'alreadyOnboarded': False}

    @staticmethod
    def nodes_to_profile_data(user) -> Dict:
        """
        Rebuild profile data (experiences and education) from timeline nodes.
        """
        nodes = list(TimelineNode.objects.filter(user=user).order_by('created_at'))
        projects_by_parent: Dict = {}
        for node in nodes:
            if node.type == 'project' and node.parent_id:
                projects_by_parent.setdefault(node.parent_id, []).append(node)

        experiences = []
        education = []
        for node in nodes:
            meta = node.meta or {}
            if node.type == 'job':
                end = meta.get('endDate')
                experiences.append({
                    'title': meta.get('role') or 'Position',
                    'company': OrganizationService.get_organization_name_from_node(node) or 'Company',
                    'location': meta.get('location'),
                    'start': meta.get('startDate'),
                    'end': None if end == 'Present' else end,
                    'current': end in (None, 'Present'),
                    'description': meta.get('description'),
                    'responsibilities': meta.get('responsibilities') or [],
                    'type': meta.get('employmentType'),
                    'projects': [
                        {
                            'title': project.meta.get('title'),
                            'description': project.meta.get('description'),
                            'technologies': project.meta.get('technologies') or [],
                            'start': project.meta.get('startDate'),
                            'end': project.meta.get('endDate'),
                        }
                        for project in projects_by_parent.get(node.id, [])
                    ],
                })
            elif node.type == 'education':
                education.append({
                    'school': OrganizationService.get_organization_name_from_node(node) or 'School',
                    'degree': meta.get('degree'),
                    'field': meta.get('field'),
                    'start': meta.get('startDate'),
                    'end': meta.get('endDate'),
                    'location': meta.get('location'),
                    'description': meta.get('description'),
                })

        return {
            'name': user.get_full_name() or user.username,
            'experiences': experiences,
            'education': education,
            'skills': [],
        }

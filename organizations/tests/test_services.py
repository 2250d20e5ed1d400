from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from journey.exceptions import BusinessRuleViolation, NotFound
from organizations.models import Organization
from organizations.services import OrganizationService
from timeline.models import TimelineNode


class OrganizationServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="sven", password="pw")

    def test_validation_collects_errors(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            OrganizationService.validate_organization({"name": " ", "type": "club"})
        self.assertEqual(len(ctx.exception.messages), 2)

    def test_partial_validation_skips_absent_keys(self) -> None:
        cleaned = OrganizationService.validate_organization({"metadata": None}, partial=True)
        self.assertEqual(cleaned, {"metadata": {}})

    def test_non_string_name_is_validation_error(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            OrganizationService.validate_organization({"name": 42, "type": "company"})
        self.assertEqual(ctx.exception.messages, ["name must be a string"])

        with self.assertRaises(ValidationError):
            OrganizationService.create_organization(["Acme", "company"])

    def test_create_is_find_or_create_case_insensitive(self) -> None:
        first = OrganizationService.create_organization({"name": "Acme", "type": "company"})
        second = OrganizationService.find_or_create_by_name(" acme ", Organization.Type.COMPANY)
        self.assertEqual(first.id, second.id)

        school = OrganizationService.find_or_create_by_name("Acme", Organization.Type.EDUCATIONAL_INSTITUTION)
        self.assertNotEqual(first.id, school.id)

    def test_find_or_create_rejects_blank_name(self) -> None:
        with self.assertRaises(ValidationError):
            OrganizationService.find_or_create_by_name("", Organization.Type.COMPANY)

    def test_get_missing_organization(self) -> None:
        with self.assertRaises(NotFound):
            OrganizationService.get_organization(12345)
        with self.assertRaises(NotFound):
            OrganizationService.get_organization("abc")

    def test_membership(self) -> None:
        org = OrganizationService.create_organization({"name": "Initech", "type": "company"})
        OrganizationService.add_member(org.id, self.user)
        self.assertTrue(OrganizationService.is_member(self.user, org.id))
        self.assertEqual(OrganizationService.get_user_organization_ids(self.user), [org.id])

        with self.assertRaises(BusinessRuleViolation):
            OrganizationService.add_member(org.id, self.user)

        OrganizationService.remove_member(org.id, self.user)
        with self.assertRaises(NotFound):
            OrganizationService.remove_member(org.id, self.user)

    def test_search_pagination(self) -> None:
        for name in ["Alpha Labs", "Beta Labs", "Gamma Labs", "Delta Corp"]:
            OrganizationService.create_organization({"name": name, "type": "company"})

        result = OrganizationService.search_organizations("labs", page=2, limit=2)
        self.assertEqual([org.name for org in result["organizations"]], ["Gamma Labs"])
        self.assertEqual(result["pagination"]["total"], 3)
        self.assertFalse(result["pagination"]["hasNext"])
        self.assertTrue(result["pagination"]["hasPrev"])

    def test_organization_name_from_node(self) -> None:
        org = OrganizationService.create_organization({"name": "Globex", "type": "company"})
        node = TimelineNode(user=self.user, type="job", meta={"orgId": org.id, "role": "Dev"})
        self.assertEqual(OrganizationService.get_organization_name_from_node(node), "Globex")

        legacy = TimelineNode(user=self.user, type="education", meta={"institution": "MIT"})
        self.assertEqual(OrganizationService.get_organization_name_from_node(legacy), "MIT")

from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase

from agent.career_tools import TOOLS, CareerTool, execute_tool
from profiles.services import ProfileService


class CareerToolTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="ines", password="pw")

    def _add_experience(self) -> dict:
        result = execute_tool(
            self.user,
            "add-experience",
            {"title": "Backend Engineer", "company": "Acme", "start": "2021-03"},
        )
        self.assertTrue(result["success"])
        return result["experience"]

    def test_registry_names(self) -> None:
        self.assertIn("add-project-work", TOOLS)
        self.assertEqual(TOOLS["add-experience"].required, ["title", "company", "start"])

    def test_add_experience_requires_fields(self) -> None:
        result = execute_tool(self.user, "add-experience", {"title": "Engineer"})
        self.assertFalse(result["success"])
        self.assertIn("company", result["error"])
        self.assertIn("start", result["error"])

    def test_unknown_tool_and_bad_arguments(self) -> None:
        self.assertFalse(execute_tool(self.user, "delete-everything", {})["success"])
        self.assertFalse(execute_tool(self.user, "get-experiences", ["nope"])["success"])

    def test_add_and_list_experiences(self) -> None:
        experience = self._add_experience()
        self.assertTrue(experience["id"])

        result = execute_tool(self.user, "get-experiences", {"includeProjects": True})
        self.assertEqual(result["experienceCount"], 1)
        self.assertEqual(result["experiences"][0]["projects"], [])

    def test_update_experience_by_company(self) -> None:
        self._add_experience()
        result = execute_tool(
            self.user, "update-experience", {"experienceCompany": "acme", "end": "2023-01"}
        )
        self.assertTrue(result["success"])
        self.assertEqual(result["experience"]["end"], "2023-01")
        self.assertIsNone(result["originalExperience"]["end"])

    def test_update_experience_without_changes(self) -> None:
        self._add_experience()
        result = execute_tool(self.user, "update-experience", {"experienceCompany": "Acme"})
        self.assertFalse(result["success"])

    def test_education_tools(self) -> None:
        execute_tool(self.user, "add-education", {"school": "State University", "degree": "BSc"})
        listing = execute_tool(self.user, "get-educations", {})
        self.assertEqual(listing["educations"][0]["index"], 0)

        result = execute_tool(self.user, "update-education", {"educationIndex": 0, "newField": "Physics"})
        self.assertTrue(result["success"])
        self.assertEqual(result["education"]["field"], "Physics")

        missing = execute_tool(self.user, "update-education", {"educationIndex": 5, "newField": "Art"})
        self.assertFalse(missing["success"])

    def test_project_and_work_updates(self) -> None:
        experience = self._add_experience()
        added = execute_tool(
            self.user,
            "add-project-to-experience",
            {"experienceId": experience["id"], "projectTitle": "Billing rewrite", "technologies": ["Go"]},
        )
        self.assertTrue(added["success"])

        work = execute_tool(
            self.user,
            "add-project-work",
            {
                "projectTitle": "billing",
                "updateTitle": "Migrated invoices",
                "workDescription": "Moved invoice generation to the new service",
                "skills": ["Kafka", "Go"],
                "results": "Invoices 3x faster",
            },
        )
        self.assertTrue(work["success"])
        self.assertEqual(work["newSkills"], ["Kafka", "Go"])

        projects = execute_tool(self.user, "get-projects", {"includeUpdates": True})
        self.assertEqual(projects["projectCount"], 1)
        self.assertEqual(projects["projects"][0]["updateCount"], 1)
        self.assertEqual(projects["projects"][0]["company"], "Acme")

        document = ProfileService.initialize_filtered_data(self.user)
        self.assertEqual(document["skills"], ["Kafka", "Go"])

    def test_repeated_skills_are_not_duplicated(self) -> None:
        experience = self._add_experience()
        execute_tool(
            self.user,
            "add-project-to-experience",
            {"experienceId": experience["id"], "projectTitle": "Search"},
        )
        arguments = {"projectTitle": "Search", "updateTitle": "Tuning", "workDescription": "Tuned ranking", "skills": ["SQL"]}
        execute_tool(self.user, "add-project-work", arguments)
        second = execute_tool(self.user, "add-project-work", dict(arguments, skills=["sql"]))
        self.assertEqual(second["newSkills"], [])

    def test_project_work_for_unknown_project(self) -> None:
        result = execute_tool(
            self.user,
            "add-project-work",
            {"projectTitle": "Ghost", "updateTitle": "x", "workDescription": "y"},
        )
        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Project not found")

    def test_add_project_needs_existing_experience(self) -> None:
        result = execute_tool(self.user, "add-project-to-experience", {"projectTitle": "Orphan"})
        self.assertFalse(result["success"])

    def test_update_project(self) -> None:
        experience = self._add_experience()
        execute_tool(
            self.user,
            "add-project-to-experience",
            {"experienceId": experience["id"], "projectTitle": "Search"},
        )
        result = execute_tool(self.user, "update-project", {"projectTitle": "search", "role": "Lead"})
        self.assertTrue(result["success"])
        self.assertEqual(result["project"]["role"], "Lead")

    def test_non_string_lookup_does_not_raise(self) -> None:
        self._add_experience()
        result = execute_tool(self.user, "update-experience", {"experienceTitle": 42, "title": "Lead"})
        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Experience not found")

    def test_string_skills_are_not_split_into_characters(self) -> None:
        experience = self._add_experience()
        execute_tool(
            self.user,
            "add-project-to-experience",
            {"experienceId": experience["id"], "projectTitle": "Search", "technologies": "Elasticsearch"},
        )
        result = execute_tool(
            self.user,
            "add-project-work",
            {"projectTitle": "Search", "updateTitle": "Indexing", "workDescription": "Rebuilt the index", "skills": "Python"},
        )
        self.assertTrue(result["success"])
        self.assertEqual(result["newSkills"], ["Python"])

        document = ProfileService.initialize_filtered_data(self.user)
        self.assertEqual(document["skills"], ["Python"])
        self.assertEqual(document["experiences"][0]["projects"][0]["technologies"], ["Elasticsearch"])

    def test_non_list_skills_are_rejected(self) -> None:
        experience = self._add_experience()
        execute_tool(
            self.user,
            "add-project-to-experience",
            {"experienceId": experience["id"], "projectTitle": "Search"},
        )
        result = execute_tool(
            self.user,
            "add-project-work",
            {"projectTitle": "Search", "updateTitle": "x", "workDescription": "y", "skills": {"name": "SQL"}},
        )
        self.assertFalse(result["success"])
        self.assertEqual(ProfileService.initialize_filtered_data(self.user)["skills"], [])

    def test_handler_type_errors_become_error_results(self) -> None:
        with mock.patch.dict(
            "agent.career_tools.TOOLS",
            {"get-experiences": CareerTool("get-experiences", "", mock.Mock(side_effect=TypeError("boom")))},
        ):
            result = execute_tool(self.user, "get-experiences", {})
        self.assertFalse(result["success"])
        self.assertIn("boom", result["error"])

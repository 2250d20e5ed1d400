from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from organizations.models import Organization
from profiles.models import Profile
from profiles.services import OnboardingService, ProfileService
from timeline.models import TimelineNode


class FormatDateTests(SimpleTestCase):
    def test_year_month_is_returned_unchanged(self) -> None:
        self.assertEqual(OnboardingService.format_date("2021-07"), "2021-07")

    def test_common_formats_are_parsed(self) -> None:
        self.assertEqual(OnboardingService.format_date("2021-07-15"), "2021-07")
        self.assertEqual(OnboardingService.format_date("Jul 2021"), "2021-07")
        self.assertEqual(OnboardingService.format_date("March 2019"), "2019-03")
        self.assertEqual(OnboardingService.format_date("2020-01-05T10:00:00Z"), "2020-01")

    def test_unparseable_values(self) -> None:
        self.assertIsNone(OnboardingService.format_date("Present"))
        self.assertIsNone(OnboardingService.format_date(""))
        self.assertIsNone(OnboardingService.format_date(None))

    def test_extract_title(self) -> None:
        self.assertEqual(OnboardingService.extract_title({"name": "CTO"}), "CTO")
        self.assertEqual(OnboardingService.extract_title(None), "Position")


class NormalizeDocumentTests(SimpleTestCase):
    def test_missing_keys_ids_and_titles(self) -> None:
        document, changed = ProfileService.normalize_document(
            {"experiences": [{"title": {"name": "Engineer"}, "company": "Acme"}]}
        )
        self.assertTrue(changed)
        experience = document["experiences"][0]
        self.assertEqual(experience["title"], "Engineer")
        self.assertTrue(experience["id"])
        self.assertEqual(experience["projects"], [])
        self.assertEqual(document["education"], [])
        self.assertEqual(document["skills"], [])

    def test_canonical_document_is_unchanged(self) -> None:
        data = {
            "experiences": [{"id": "e1", "title": "Dev", "company": "Acme", "projects": []}],
            "education": [],
            "skills": ["go"],
        }
        document, changed = ProfileService.normalize_document(data)
        self.assertFalse(changed)
        self.assertEqual(document, data)


@override_settings(MAPBOX_TOKEN='')
class OnboardingServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="june", password="pw")
        self.profile_data = {
            "name": "June Park Lee",
            "experiences": [
                {
                    "title": "Data Engineer",
                    "company": "Northwind",
                    "start": "Jan 2020",
                    "end": "2022-06-30",
                    "projects": [{"title": "Lakehouse", "technologies": ["spark"]}],
                },
                {"title": "Broken", "company": "Oops", "start": "2022-05", "end": "2021-01"},
            ],
            "education": [{"school": "Tech Institute", "degree": "BSc", "field": "Math"}],
        }

    def test_save_profile_creates_nodes(self) -> None:
        result = OnboardingService.save_profile(self.user, self.profile_data, "grow-career")

        self.assertFalse(result["alreadyOnboarded"])
        types = sorted(node.type for node in result["nodes"])
        self.assertEqual(types, ["education", "job", "project"])

        job = TimelineNode.objects.get(user=self.user, type="job")
        self.assertEqual(job.meta["role"], "Data Engineer")
        self.assertEqual(job.meta["startDate"], "2020-01")
        self.assertEqual(job.meta["endDate"], "2022-06")
        org = Organization.objects.get(id=job.meta["orgId"])
        self.assertEqual(org.type, "company")

        project = TimelineNode.objects.get(user=self.user, type="project")
        self.assertEqual(project.parent_id, job.id)
        self.assertEqual(project.meta["projectType"], "professional")

        education = TimelineNode.objects.get(user=self.user, type="education")
        self.assertEqual(Organization.objects.get(id=education.meta["orgId"]).type, "educational_institution")

        self.user.refresh_from_db()
        self.assertTrue(self.user.has_completed_onboarding)
        self.assertEqual(self.user.interest, "grow-career")
        self.assertEqual(self.user.first_name, "June")
        self.assertEqual(self.user.last_name, "Park Lee")
        self.assertEqual(Profile.objects.get(user=self.user).raw_data["name"], "June Park Lee")

    def test_second_save_returns_existing_data(self) -> None:
        OnboardingService.save_profile(self.user, self.profile_data)
        before = TimelineNode.objects.filter(user=self.user).count()

        result = OnboardingService.save_profile(self.user, self.profile_data)
        self.assertTrue(result["alreadyOnboarded"])
        self.assertEqual(TimelineNode.objects.filter(user=self.user).count(), before)
        experience = result["profile"]["experiences"][0]
        self.assertEqual(experience["company"], "Northwind")
        self.assertEqual(experience["projects"][0]["title"], "Lakehouse")
        self.assertEqual(result["profile"]["education"][0]["school"], "Tech Institute")

    @mock.patch("profiles.services.logger")
    def test_invalid_entry_is_logged_and_skipped(self, mock_logger) -> None:
        OnboardingService.save_profile(self.user, self.profile_data)
        self.assertEqual(TimelineNode.objects.filter(user=self.user, type="job").count(), 1)
        mock_logger.error.assert_called()

    def test_unexpected_entry_error_does_not_abort_onboarding(self) -> None:
        with mock.patch.object(
            OnboardingService, "create_education_node", side_effect=TypeError("bad school")
        ):
            result = OnboardingService.save_profile(self.user, self.profile_data)

        self.assertEqual(sorted(node.type for node in result["nodes"]), ["job", "project"])
        self.user.refresh_from_db()
        self.assertTrue(self.user.has_completed_onboarding)

    def test_technologies_string_is_split_on_commas(self) -> None:
        self.profile_data["experiences"][0]["projects"] = [
            {"title": "Lakehouse", "technologies": "Spark, Delta Lake"}
        ]
        OnboardingService.save_profile(self.user, self.profile_data)
        project = TimelineNode.objects.get(user=self.user, type="project")
        self.assertEqual(project.meta["technologies"], ["Spark", "Delta Lake"])


class ProfileServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="omar", password="pw", user_name="omar")

    def test_initialize_persists_only_when_changed(self) -> None:
        document = ProfileService.initialize_filtered_data(self.user)
        self.assertEqual(document, {"experiences": [], "education": [], "skills": []})
        profile = Profile.objects.get(user=self.user)
        self.assertEqual(profile.user_name, "omar")

        with mock.patch.object(Profile, "save") as mock_save:
            ProfileService.initialize_filtered_data(self.user)
        mock_save.assert_not_called()

    def test_stats(self) -> None:
        ProfileService.update_filtered_data(
            self.user,
            {
                "experiences": [
                    {"title": "Dev", "projects": [{"title": "A", "updates": [{"id": "u1"}, {"id": "u2"}]}]},
                ],
                "education": [{"school": "MIT"}],
                "skills": ["python", "rust"],
            },
        )
        stats = ProfileService.get_profile_stats(self.user)
        self.assertEqual(
            stats,
            {"experienceCount": 1, "projectCount": 1, "updateCount": 2, "educationCount": 1, "skillCount": 2},
        )

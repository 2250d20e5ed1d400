from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from timeline.meta import get_meta_schema, parse_month, validate_meta


class ValidateMetaTests(SimpleTestCase):
    def test_job_requires_org_and_role(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_meta("job", {"location": "Austin, TX"})
        messages = ctx.exception.messages
        self.assertIn("orgId is required", messages)
        self.assertIn("role is required", messages)

    def test_valid_job_meta_is_cleaned(self) -> None:
        meta = validate_meta(
            "job",
            {
                "orgId": 3,
                "role": "  Data Analyst ",
                "skills": ["python", " ", "sql "],
                "startDate": "2022-01",
                "endDate": None,
            },
        )
        self.assertEqual(meta["role"], "Data Analyst")
        self.assertEqual(meta["skills"], ["python", "sql"])
        self.assertNotIn("endDate", meta)

    def test_unknown_fields_are_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_meta("project", {"title": "CLI", "stars": 10})
        self.assertTrue(any("stars" in message for message in ctx.exception.messages))

    def test_end_date_before_start_date(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_meta("event", {"title": "PyCon", "startDate": "2024-05", "endDate": "2024-04"})
        self.assertIn("endDate cannot be before startDate", ctx.exception.messages)

    def test_date_format_must_be_year_month(self) -> None:
        with self.assertRaises(ValidationError):
            validate_meta("action", {"title": "Apply", "startDate": "2024-05-01"})
        self.assertIsNone(parse_month("2024-13"))

    def test_gpa_range_and_enum_choices(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_meta("education", {"orgId": 1, "degree": "BSc", "gpa": 4.5})
        self.assertTrue(any("gpa" in message for message in ctx.exception.messages))

        with self.assertRaises(ValidationError):
            validate_meta("action", {"title": "Ship", "impact": "huge"})

    def test_project_links_are_checked(self) -> None:
        validate_meta(
            "project",
            {"title": "Site", "links": [{"type": "github", "url": "https://github.com/a/b"}]},
        )
        with self.assertRaises(ValidationError) as ctx:
            validate_meta("project", {"title": "Site", "links": [{"type": "blog", "url": "nope"}]})
        self.assertEqual(len(ctx.exception.messages), 2)

    def test_unknown_type(self) -> None:
        with self.assertRaises(ValidationError):
            validate_meta("hobby", {})


class MetaSchemaTests(SimpleTestCase):
    def test_schema_lists_required_fields(self) -> None:
        schema = get_meta_schema("education")
        self.assertEqual(sorted(schema["required"]), ["degree", "orgId"])
        self.assertFalse(schema["additionalProperties"])
        self.assertEqual(schema["properties"]["gpa"]["maximum"], 4)
        self.assertIn("startDate", schema["properties"])

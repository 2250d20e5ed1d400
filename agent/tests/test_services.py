import json
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from agent.services import CareerAgentError, CareerAgentService
from profiles.services import ProfileService


def _response(payload, response_id="resp_1", usage=None):
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(
        id=response_id,
        output=[SimpleNamespace(content=[SimpleNamespace(type="output_text", text=text)])],
        usage=usage or SimpleNamespace(input_tokens=120, output_tokens=30, total_tokens=150),
    )


@override_settings(OPENAI_API_KEY="test-key")
class ResponseParsingTests(SimpleTestCase):
    def setUp(self) -> None:
        patcher = mock.patch("agent.services.OpenAI")
        patcher.start()
        self.addCleanup(patcher.stop)
        self.service = CareerAgentService()

    def test_fenced_json_with_trailing_comma(self) -> None:
        raw = 'Sure!\n```json\n{"reply": "Done", "tool_calls": [],}\n```'
        self.assertEqual(self.service._extract_response_json(_response(raw))["reply"], "Done")

    def test_empty_output_raises(self) -> None:
        response = SimpleNamespace(output=[], output_text="")
        with self.assertRaises(CareerAgentError):
            self.service._extract_response_json(response)

    def test_non_object_json_raises(self) -> None:
        with self.assertRaises(CareerAgentError):
            self.service._extract_response_json(_response("[1, 2]"))

    def test_usage_defaults_to_zero(self) -> None:
        usage = self.service._extract_usage(SimpleNamespace(usage=None))
        self.assertEqual(usage["total_tokens"], 0)


class MissingKeyTests(SimpleTestCase):
    @override_settings(OPENAI_API_KEY="")
    def test_missing_api_key(self) -> None:
        with mock.patch.dict("os.environ", {"OPENAI_API_KEY": ""}):
            with self.assertRaises(CareerAgentError):
                CareerAgentService()


@override_settings(OPENAI_API_KEY="test-key")
class RunTurnTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="tomas", password="pw")
        patcher = mock.patch("agent.services.OpenAI")
        self.openai_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.openai_cls.return_value
        self.service = CareerAgentService()

    def test_tool_calls_are_executed(self) -> None:
        self.client.responses.create.return_value = _response({
            "reply": "Added your role at Acme.",
            "tool_calls": [
                {
                    "tool": "add-experience",
                    "arguments": {"title": "Engineer", "company": "Acme", "start": "2020-01"},
                }
            ],
        })

        result = self.service.run_turn(self.user, [], "I worked at Acme as an engineer since Jan 2020")

        self.assertEqual(result["reply"], "Added your role at Acme.")
        self.assertEqual(result["run_id"], "resp_1")
        self.assertEqual(result["token_usage"]["total_tokens"], 150)
        self.assertEqual(result["words_generated"], 5)
        self.assertTrue(result["tool_results"][0]["result"]["success"])
        document = ProfileService.initialize_filtered_data(self.user)
        self.assertEqual(document["experiences"][0]["company"], "Acme")

        params = self.client.responses.create.call_args.kwargs
        self.assertEqual(params["text"], {"format": {"type": "json_object"}})

    def test_history_is_trimmed_and_filtered(self) -> None:
        history = [{"role": "user", "content": f"m{i}"} for i in range(30)] + [{"role": "system", "content": "x"}]
        with override_settings(CAREER_AGENT_MAX_HISTORY=5):
            service = CareerAgentService()
        payload = service.build_payload(self.user, history, "hi")
        self.assertEqual(len(payload["conversation"]), 4)
        self.assertEqual(len(payload["tools"]), 10)

    def test_fallback_reply_uses_tool_errors(self) -> None:
        self.client.responses.create.return_value = _response({
            "tool_calls": [{"tool": "add-experience", "arguments": {"title": "Engineer"}}],
        })
        result = self.service.run_turn(self.user, [], "Add my job")
        self.assertIn("Missing required information", result["reply"])

    def test_empty_message_rejected(self) -> None:
        with self.assertRaises(CareerAgentError):
            self.service.run_turn(self.user, [], "   ")

    def test_openai_failure_is_wrapped(self) -> None:
        self.client.responses.create.side_effect = RuntimeError("boom")
        with self.assertRaises(CareerAgentError):
            self.service.run_turn(self.user, [], "hello")

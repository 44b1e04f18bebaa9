import asyncio
import json
import unittest
from unittest.mock import patch

import httpx

from policy_service.core.config import Settings
from policy_service.core.frameworks import PolicyType, SecurityFramework
from policy_service.models.policies import PolicyFormData
from policy_service.services import policy_generator

TEST_SETTINGS = Settings(openrouter_api_key="test-key", openrouter_base_url="https://openrouter.test/api/v1")


def _form(**overrides) -> PolicyFormData:
    values = {
        "organization_name": "Acme",
        "framework": "HIPAA",
        "constraints": "Remote-first clinic with 40 staff.",
    }
    values.update(overrides)
    return PolicyFormData(**values)


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestValidatePolicyRequest(unittest.TestCase):
    def test_accepts_valid_request(self) -> None:
        policy_generator.validate_policy_request(_form())
        policy_generator.validate_policy_request(_form(organization_name="A" * 20, constraints="c" * 500))

    def test_rejects_missing_fields(self) -> None:
        for field in ("organization_name", "framework", "constraints"):
            with self.subTest(field=field):
                with self.assertRaises(ValueError) as ctx:
                    policy_generator.validate_policy_request(_form(**{field: None}))
                self.assertEqual(str(ctx.exception), "Missing required fields")

    def test_rejects_long_organization_name(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            policy_generator.validate_policy_request(_form(organization_name="A" * 21))
        self.assertEqual(str(ctx.exception), "Organization name too long")

    def test_rejects_unsafe_organization_names(self) -> None:
        for name in ("../../etc/x", "Acme/Labs", "Acme\\Labs", "Acme\r\nX", "Acme\tLabs"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError) as ctx:
                    policy_generator.validate_policy_request(_form(organization_name=name))
                self.assertEqual(str(ctx.exception), "Organization name contains invalid characters")

    def test_rejects_long_constraints(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            policy_generator.validate_policy_request(_form(constraints="c" * 501))
        self.assertEqual(str(ctx.exception), "Constraints too long")

    def test_rejects_unknown_framework(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            policy_generator.validate_policy_request(_form(framework="ISO 27001"))
        self.assertIn("Unsupported framework", str(ctx.exception))


class TestBuildPolicyPrompt(unittest.TestCase):
    def test_prompt_contents(self) -> None:
        prompt = policy_generator.build_policy_prompt(
            PolicyType.INCIDENT_RESPONSE,
            "Acme",
            SecurityFramework.HIPAA,
            "Remote-first clinic.",
        )
        self.assertTrue(
            prompt.startswith(
                "Create a comprehensive Incident Response Policy for Acme that must comply with HIPAA requirements."
            )
        )
        self.assertIn("Organization specifics: Remote-first clinic.", prompt)
        self.assertIn("# Incident Response Policy - Acme", prompt)
        self.assertIn("## Framework Mappings\n| Policy | Control ID | Description", prompt)
        self.assertIn("§164.404 - Notification to individuals", prompt)
        self.assertNotIn("§164.312(d)", prompt)
        self.assertTrue(prompt.endswith("Breach notification requirements within 60 days"))


class TestGeneratePolicySet(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.requests: list[dict] = []
        patcher = patch.object(policy_generator, "get_settings", return_value=TEST_SETTINGS)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _client(self, handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=TEST_SETTINGS.openrouter_base_url,
            transport=httpx.MockTransport(handler),
        )

    async def test_generates_all_three_policies(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            self.requests.append(body)
            prompt = body["messages"][0]["content"]
            for policy_type in PolicyType:
                if prompt.startswith(f"Create a comprehensive {policy_type.document_title}"):
                    return httpx.Response(200, json=_completion(f"# {policy_type.document_title}"))
            return httpx.Response(400)

        with patch.object(policy_generator, "_build_client", return_value=self._client(handler)):
            policies = await policy_generator.generate_policy_set(_form())

        self.assertEqual(policies.access_control, "# Access Control Policy")
        self.assertEqual(policies.acceptable_usage, "# Acceptable Usage Policy")
        self.assertEqual(policies.incident_response, "# Incident Response Policy")
        self.assertEqual(len(self.requests), 3)
        self.assertTrue(all(body["model"] == "mistralai/mistral-nemo" for body in self.requests))

    async def test_http_error_fails_the_batch(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            prompt = json.loads(request.content)["messages"][0]["content"]
            if "Acceptable Usage" in prompt.splitlines()[0]:
                return httpx.Response(502, text="upstream unavailable")
            return httpx.Response(200, json=_completion("# Policy"))

        with patch.object(policy_generator, "_build_client", return_value=self._client(handler)):
            with self.assertRaises(policy_generator.PolicyGenerationError):
                await policy_generator.generate_policy_set(_form())

    async def test_failure_waits_for_sibling_requests(self) -> None:
        finished: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            first_line = json.loads(request.content)["messages"][0]["content"].splitlines()[0]
            if "Access Control" in first_line:
                return httpx.Response(500, text="boom")
            await asyncio.sleep(0.05)
            finished.append(first_line)
            return httpx.Response(200, json=_completion("# Policy"))

        client = self._client(handler)
        with patch.object(policy_generator, "_build_client", return_value=client):
            with self.assertRaises(policy_generator.PolicyGenerationError) as ctx:
                await policy_generator.generate_policy_set(_form())

        self.assertIn("HTTP 500", str(ctx.exception))
        self.assertEqual(len(finished), 2)
        self.assertTrue(client.is_closed)

    async def test_empty_completion_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        with patch.object(policy_generator, "_build_client", return_value=self._client(handler)):
            with self.assertRaises(policy_generator.PolicyGenerationError):
                await policy_generator.generate_policy_set(_form())

    async def test_invalid_json_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with patch.object(policy_generator, "_build_client", return_value=self._client(handler)):
            with self.assertRaises(policy_generator.PolicyGenerationError):
                await policy_generator.generate_policy_set(_form())

    async def test_transport_error_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with patch.object(policy_generator, "_build_client", return_value=self._client(handler)):
            with self.assertRaises(policy_generator.PolicyGenerationError):
                await policy_generator.generate_policy_set(_form())


class TestExtractMessageContent(unittest.TestCase):
    def test_extracts_and_strips(self) -> None:
        self.assertEqual(policy_generator._extract_message_content(_completion("  # Policy \n")), "# Policy")

    def test_handles_malformed_payloads(self) -> None:
        self.assertEqual(policy_generator._extract_message_content({}), "")
        self.assertEqual(policy_generator._extract_message_content({"choices": ["x"]}), "")
        self.assertEqual(policy_generator._extract_message_content({"choices": [{"message": None}]}), "")


if __name__ == "__main__":
    unittest.main()

"""LLM policy drafting through OpenRouter."""

import asyncio
import re

import httpx

from policy_service.core.config import get_settings
from policy_service.core.frameworks import (
    PolicyType,
    SecurityFramework,
    get_requirements,
    is_valid_framework,
)
from policy_service.core.logging import get_logger
from policy_service.models.policies import PolicyFormData, PolicySet

logger = get_logger(__name__)

MAX_ORGANIZATION_NAME_LENGTH = 20
MAX_CONSTRAINTS_LENGTH = 500

# The organization name ends up in file names and response headers.
UNSAFE_NAME_RE = re.compile(r"[/\\\x00-\x1f\x7f]|\.\.")


class PolicyGenerationError(RuntimeError):
    """Raised when any of the LLM calls for a policy set fails."""


def validate_policy_request(form: PolicyFormData) -> None:
    if not form.organization_name or not form.framework or not form.constraints:
        raise ValueError("Missing required fields")

    if len(form.organization_name) > MAX_ORGANIZATION_NAME_LENGTH:
        raise ValueError("Organization name too long")

    if UNSAFE_NAME_RE.search(form.organization_name):
        raise ValueError("Organization name contains invalid characters")

    if len(form.constraints) > MAX_CONSTRAINTS_LENGTH:
        raise ValueError("Constraints too long")

    if not is_valid_framework(form.framework):
        valid = ", ".join(fw.value for fw in SecurityFramework)
        raise ValueError(f"Unsupported framework '{form.framework}'. Must be one of: {valid}")


def build_policy_prompt(
    policy_type: PolicyType,
    organization_name: str,
    framework: SecurityFramework,
    constraints: str,
) -> str:
    """Build the drafting prompt for one policy document."""
    title = policy_type.document_title
    requirements = "\n".join(get_requirements(framework, policy_type))

    return f"""Create a comprehensive {title} for {organization_name} that must comply with {framework.value} requirements.

Organization specifics: {constraints}

The policy must follow this EXACT format:

# {title} - {organization_name}

## Purpose & Scope
[Detailed purpose and scope section]

## Policy Statements - Core requirements according to policy type
[Comprehensive policy statements with numbered requirements]

## Roles & Responsibilities
[Clear role definitions and responsibilities]

## Compliance & Enforcement
[Enforcement mechanisms and compliance requirements]

## Review Cycle
[Policy review and update procedures]

## Appendices
# Appendix A: Glossary
[Key terms and definitions]

## Framework-Specific Requirements
[Specific {framework.value} control requirements]

## Framework Mappings
| Policy | Control ID | Description
[Table mapping policy requirements to {framework.value} controls]

Key requirements for {framework.value}:
{requirements}"""


def _build_client() -> httpx.AsyncClient:
    """Create the OpenRouter HTTP client for one generation batch."""
    settings = get_settings()
    if not settings.openrouter_api_key.strip():
        raise PolicyGenerationError("Missing OpenRouter API key.")
    return httpx.AsyncClient(
        base_url=settings.openrouter_base_url.rstrip("/"),
        headers={
            "Authorization": f"Bearer {settings.openrouter_api_key}",
            "Accept": "application/json",
        },
        timeout=settings.openrouter_timeout,
    )


def _extract_message_content(payload: dict) -> str:
    """Safely extract the assistant message content from OpenRouter payload."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") if isinstance(first, dict) else {}
    content = message.get("content") if isinstance(message, dict) else ""
    return str(content or "").strip()


async def generate_policy_text(client: httpx.AsyncClient, prompt: str, model: str) -> str:
    """Run one chat completion and return the drafted markdown."""
    try:
        response = await client.post(
            "/chat/completions",
            json={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "stream": False,
            },
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.TimeoutException as e:
        logger.error("OpenRouter request timed out: %s", e)
        raise PolicyGenerationError("OpenRouter request timed out.") from e
    except httpx.HTTPStatusError as e:
        logger.error(
            "OpenRouter HTTP error %s: %s",
            e.response.status_code,
            e.response.text[:200] if e.response.text else "no body",
        )
        raise PolicyGenerationError(f"OpenRouter returned HTTP {e.response.status_code}.") from e
    except httpx.HTTPError as e:
        logger.error("OpenRouter request failed: %s", e)
        raise PolicyGenerationError("OpenRouter request failed.") from e
    except ValueError as e:
        logger.error("Failed to parse OpenRouter response: %s", e)
        raise PolicyGenerationError("OpenRouter returned invalid JSON.") from e

    if not isinstance(payload, dict):
        raise PolicyGenerationError("OpenRouter returned an unexpected payload.")
    content = _extract_message_content(payload)
    if not content:
        raise PolicyGenerationError("OpenRouter returned an empty policy.")
    return content


async def generate_policy_set(form: PolicyFormData) -> PolicySet:
    """Draft all three policies concurrently.

    The request must already have passed ``validate_policy_request``. The
    batch fails as a whole if any single call fails; nothing is retried.
    """
    settings = get_settings()
    framework = SecurityFramework(form.framework)
    policy_types = list(PolicyType)
    prompts = [
        build_policy_prompt(policy_type, form.organization_name, framework, form.constraints)
        for policy_type in policy_types
    ]

    logger.info(
        "Generating %d policies for '%s' (%s) with %s",
        len(prompts),
        form.organization_name,
        framework.value,
        settings.openrouter_model,
    )
    async with _build_client() as client:
        # Every call settles before the shared client is closed.
        results = await asyncio.gather(
            *(generate_policy_text(client, prompt, settings.openrouter_model) for prompt in prompts),
            return_exceptions=True,
        )
    for result in results:
        if isinstance(result, BaseException):
            raise result

    policies = PolicySet(
        **{policy_type.field_name: text for policy_type, text in zip(policy_types, results)}
    )
    logger.info("Generated policy set for '%s'", form.organization_name)
    return policies

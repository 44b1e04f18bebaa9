"""PDF export of a policy set, bundled as a zip archive."""

from __future__ import annotations

import asyncio
import io
import re
import zipfile
from dataclasses import dataclass
from datetime import date
from functools import partial

from policy_service.core.frameworks import PolicyType, SecurityFramework, is_valid_framework
from policy_service.core.logging import get_logger
from policy_service.models.policies import ExportRequest, PolicySet
from policy_service.services.layout import (
    LayoutMode,
    LayoutOptions,
    layout_document,
    layout_markdown,
)
from policy_service.services.markdown_tree import Block, Heading, Paragraph
from policy_service.services.pdf_document import PolicyDocument
from policy_service.services.policy_generator import MAX_ORGANIZATION_NAME_LENGTH, UNSAFE_NAME_RE

logger = get_logger(__name__)

DEFAULT_OPTIONS = LayoutOptions()

_WHITESPACE_RE = re.compile(r"\s+")


class ExportError(RuntimeError):
    """Raised when any PDF or the archive could not be produced."""


@dataclass(frozen=True)
class ExportArchive:
    filename: str
    content: bytes


def validate_export_request(request: ExportRequest) -> None:
    if not request.organization_name or not request.framework or request.policies is None:
        raise ValueError("Missing required fields")

    if len(request.organization_name) > MAX_ORGANIZATION_NAME_LENGTH:
        raise ValueError("Organization name too long")

    if UNSAFE_NAME_RE.search(request.organization_name):
        raise ValueError("Organization name contains invalid characters")

    if not is_valid_framework(request.framework):
        valid = ", ".join(fw.value for fw in SecurityFramework)
        raise ValueError(f"Unsupported framework '{request.framework}'. Must be one of: {valid}")


def _file_safe(organization_name: str) -> str:
    return UNSAFE_NAME_RE.sub("_", organization_name)


def policy_filename(organization_name: str, policy_type: PolicyType) -> str:
    return f"{_file_safe(organization_name)}_{policy_type.file_stem}_Policy.pdf"


def archive_filename(organization_name: str, framework: SecurityFramework) -> str:
    framework_slug = _WHITESPACE_RE.sub("_", framework.value)
    return f"{_file_safe(organization_name)}_Security_Policies_{framework_slug}.zip"


def title_blocks(
    policy_type: PolicyType,
    organization_name: str,
    framework: SecurityFramework,
    generated_on: date,
) -> list[Block]:
    """Cover lines printed above every policy."""
    return [
        Heading(level=1, text=policy_type.document_title),
        Heading(level=2, text=organization_name),
        Paragraph(text=f"Framework: {framework.value}"),
        Paragraph(text=f"Generated: {generated_on.strftime('%m/%d/%Y')}"),
    ]


def build_policy_pdf(
    markdown: str,
    policy_type: PolicyType,
    organization_name: str,
    framework: SecurityFramework,
    mode: LayoutMode = LayoutMode.RICH,
    options: LayoutOptions = DEFAULT_OPTIONS,
    generated_on: date | None = None,
) -> bytes:
    """Lay out one policy and serialize it to PDF bytes."""
    document = PolicyDocument(
        options,
        title=f"{policy_type.document_title} - {organization_name}",
        author=organization_name,
        subject=f"{framework.value} compliance policy",
    )
    y = layout_document(
        title_blocks(policy_type, organization_name, framework, generated_on or date.today()),
        options,
        document,
    )
    layout_markdown(markdown, options, document, mode=mode, start_y=y)
    logger.debug(
        "Laid out %s: %d pages, %d draw operations",
        policy_type.document_title,
        document.page_count,
        len(document.operations),
    )
    return document.output()


def bundle_archive(files: dict[str, bytes]) -> bytes:
    """Zip the given files in memory, in insertion order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


async def export_policies(
    policies: PolicySet,
    organization_name: str,
    framework: SecurityFramework,
    mode: LayoutMode = LayoutMode.RICH,
    options: LayoutOptions = DEFAULT_OPTIONS,
) -> ExportArchive:
    """Build the three policy PDFs and bundle them into one archive.

    Each PDF is laid out in its own executor thread; they share no state.
    Any failure aborts the whole export.

    Raises:
        ExportError: If any layout, serialization or zipping step fails
    """
    policy_types = list(PolicyType)
    generated_on = date.today()
    logger.info(
        "Exporting %d policies for '%s' (%s, %s layout)",
        len(policy_types),
        organization_name,
        framework.value,
        mode.value,
    )
    try:
        loop = asyncio.get_event_loop()
        pdfs = await asyncio.gather(
            *(
                loop.run_in_executor(
                    None,
                    partial(
                        build_policy_pdf,
                        policies.content_for(policy_type),
                        policy_type,
                        organization_name,
                        framework,
                        mode,
                        options,
                        generated_on,
                    ),
                )
                for policy_type in policy_types
            )
        )
        files = {
            policy_filename(organization_name, policy_type): pdf
            for policy_type, pdf in zip(policy_types, pdfs)
        }
        content = bundle_archive(files)
    except Exception as exc:
        logger.error("Error exporting policies for '%s': %s", organization_name, exc)
        raise ExportError("Failed to export policies") from exc

    filename = archive_filename(organization_name, framework)
    logger.info("Exported %s (%d bytes)", filename, len(content))
    return ExportArchive(filename=filename, content=content)

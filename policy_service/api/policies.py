from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Response, status

from policy_service.core.config import get_settings
from policy_service.core.frameworks import SecurityFramework
from policy_service.core.logging import get_logger
from policy_service.models.policies import ErrorResponse, ExportRequest, PolicyFormData, PolicySet
from policy_service.services.exporter import ExportError, export_policies, validate_export_request
from policy_service.services.layout import LayoutMode
from policy_service.services.policy_generator import generate_policy_set, validate_policy_request

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["policies"])

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _content_disposition(filename: str) -> str:
    if filename.isascii() and '"' not in filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename*=UTF-8''{quote(filename)}"


@router.post("/generate-policies", response_model=PolicySet, responses=_ERROR_RESPONSES)
async def generate_policies(form: PolicyFormData) -> PolicySet:
    """Draft the Access Control, Acceptable Usage and Incident Response policies.

    Args:
        form: organizationName (max 20 chars), framework (one of the
            supported labels) and constraints (max 500 chars)
    """
    try:
        validate_policy_request(form)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    try:
        return await generate_policy_set(form)
    except Exception as exc:
        logger.error("Error generating policies: %s: %s", type(exc).__name__, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate policies",
        ) from exc


@router.post(
    "/export-policies",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {"application/zip": {}}},
        **_ERROR_RESPONSES,
    },
)
async def export_policy_archive(request: ExportRequest) -> Response:
    """Render a policy set to three PDFs and return them as a zip download."""
    try:
        validate_export_request(request)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    mode = request.mode or LayoutMode(get_settings().export_mode)
    try:
        archive = await export_policies(
            request.policies,
            request.organization_name,
            SecurityFramework(request.framework),
            mode=mode,
        )
    except ExportError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return Response(
        content=archive.content,
        media_type="application/zip",
        headers={"Content-Disposition": _content_disposition(archive.filename)},
    )

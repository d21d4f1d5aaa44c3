"""GET /api/data - unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from api.middleware import get_tenant_context
from core.models import DocumentKind
from core.rendering import einvoice_monetary_totals


VALID_TYPES = {
    "billing_profile", "onboarding", "next_number", "document", "documents", "project_kpi", "activity",
}


def _parse_kind(kind: str | None) -> DocumentKind:
    if kind is None:
        raise ValueError("'kind' query parameter is required")
    try:
        return DocumentKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in DocumentKind)
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {valid}")


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    profile_svc = services["billing_profile"]
    document_svc = services["document"]
    allocator = services["allocator"]
    kpi_svc = services["project_kpi"]
    audit = services["audit"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        kind: str | None = Query(None),
        number: str | None = Query(None),
        project_id: str | None = Query(None),
        entity_type: str | None = Query(None),
        entity_id: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        ctx = get_tenant_context(request)
        request_id = getattr(request.state, "request_id", None)

        if type == "billing_profile":
            profile = profile_svc.get_or_create(ctx)
            return success_response(profile.model_dump(mode="json"), request_id).model_dump(mode="json")

        if type == "onboarding":
            return success_response(_onboarding(profile_svc, ctx), request_id).model_dump(mode="json")

        if type == "next_number":
            allocated = allocator.peek(ctx, _parse_kind(kind))
            return success_response(allocated.model_dump(mode="json"), request_id).model_dump(mode="json")

        if type == "document":
            return _handle_document(document_svc, ctx, _parse_kind(kind), number, request_id)

        if type == "documents":
            doc_kind = _parse_kind(kind) if kind else None
            documents = document_svc.list(ctx, doc_kind, limit)
            return success_response(
                [d.model_dump(mode="json") for d in documents], request_id
            ).model_dump(mode="json")

        if type == "project_kpi":
            if not project_id:
                raise ValueError("'project_kpi' type requires 'project_id' parameter")
            report = kpi_svc.get_report(ctx, UUID(project_id))
            return success_response(report.model_dump(mode="json"), request_id).model_dump(mode="json")

        if type == "activity":
            if entity_id:
                if not entity_type:
                    raise ValueError("'entity_id' filter requires 'entity_type' parameter")
                entries = audit.get_entity_history(ctx, entity_type, UUID(entity_id))
            else:
                entries = audit.recent_activity(ctx, limit, entity_type)
            return success_response(entries, request_id).model_dump(mode="json")

    return router


def _onboarding(profile_svc, ctx) -> dict:
    state = profile_svc.onboarding_state(ctx)
    return {
        "state": type(state).__name__,
        "ready": state.ready,
        "missing": sorted(state.missing),
    }


def _handle_document(document_svc, ctx, kind, number, request_id):
    if not number:
        raise ValueError("'document' type requires 'number' parameter")

    document = document_svc.get(ctx, kind, number)
    if document is None:
        raise ValueError(f"{kind.value} {number} not found")

    data = document.model_dump(mode="json")
    totals = document_svc.render_payload(ctx, document).totals
    data["totals"] = totals.model_dump(mode="json")
    data["monetary_totals"] = einvoice_monetary_totals(totals)
    return success_response(data, request_id).model_dump(mode="json")

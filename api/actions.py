"""POST /api/actions - unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from api.middleware import get_tenant_context
from core.models import BillingProfileUpdate, DocumentDraft, DocumentKind, ProjectKpiSettings, onboarding_state
from core.rendering import einvoice_monetary_totals


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "billing_profile": BillingProfileHandler(services["billing_profile"]),
        "document": DocumentHandler(services["document"], services.get("preview")),
        "project_kpi": ProjectKpiHandler(services["project_kpi"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        ctx = get_tenant_context(request)
        method = getattr(handler, f"_handle_{body.action}")
        result = method(ctx, body.data)
        return success_response(result, getattr(request.state, "request_id", None)).model_dump(mode="json")

    return router


def _kind(data: dict, key: str = "kind") -> DocumentKind:
    value = data.get(key)
    if value is None:
        raise ValueError(f"'{key}' is required")
    try:
        return DocumentKind(value)
    except ValueError:
        raise ValueError(f"Unknown {key} '{value}'")


def _draft(data: dict) -> DocumentDraft:
    return DocumentDraft.model_validate(data.get("draft") or {})


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class BillingProfileHandler:
    ALLOWED_ACTIONS = {"update"}

    def __init__(self, service):
        self.service = service

    def _handle_update(self, ctx, data: dict):
        profile = self.service.update(ctx, BillingProfileUpdate(**data))
        state = onboarding_state(profile)
        result = profile.model_dump(mode="json")
        result["onboarding"] = {"ready": state.ready, "missing": sorted(state.missing)}
        return result


class DocumentHandler:
    ALLOWED_ACTIONS = {"preview", "commit", "update", "convert"}

    def __init__(self, service, preview_service=None):
        self.service = service
        self.preview_service = preview_service

    def _handle_preview(self, ctx, data: dict):
        kind = _kind(data)
        draft = _draft(data)
        number = data.get("number")
        draft_key = data.get("draft_key")

        if draft_key and self.preview_service is not None:
            preview = self.preview_service.preview_document(ctx, kind, draft, draft_key, number=number)
            if preview is None:
                return {"stale": True}
        else:
            preview = self.service.preview(ctx, kind, draft, number=number)

        result = preview.model_dump(mode="json")
        result["stale"] = False
        result["monetary_totals"] = einvoice_monetary_totals(preview.totals)
        return result

    def _handle_commit(self, ctx, data: dict):
        document = self.service.commit(
            ctx, _kind(data), _draft(data), idempotency_key=data.get("idempotency_key")
        )
        return document.model_dump(mode="json")

    def _handle_update(self, ctx, data: dict):
        number = data.get("number")
        if not number:
            raise ValueError("'number' is required")
        document = self.service.update(ctx, _kind(data), number, _draft(data))
        return document.model_dump(mode="json")

    def _handle_convert(self, ctx, data: dict):
        source_number = data.get("source_number")
        if not source_number:
            raise ValueError("'source_number' is required")
        document = self.service.convert(
            ctx,
            _kind(data, "source_kind"),
            source_number,
            _kind(data, "target_kind"),
            idempotency_key=data.get("idempotency_key"),
        )
        return document.model_dump(mode="json")


class ProjectKpiHandler:
    ALLOWED_ACTIONS = {"save"}

    def __init__(self, service):
        self.service = service

    def _handle_save(self, ctx, data: dict):
        project_id = data.get("project_id")
        if not project_id:
            raise ValueError("'project_id' is required")
        settings = ProjectKpiSettings.model_validate(data.get("settings") or {})
        report = self.service.save_settings(ctx, UUID(project_id), settings)
        return report.model_dump(mode="json")

"""
Project KPI service.

Reads owner-entered KPI settings and the project's time entries, and derives
time statistics and finance figures on every call. The only stored derived
value is the sign of the last observed margin, which turns the zero-margin
alert into an edge trigger: one MarginDepleted per positive -> <= 0 crossing,
no matter how many processes recompute the figures.
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.event_bus import EventBus
from core.events import MarginDepleted
from core.finance import MarginWatch, aggregate_time_entries, compute_finance, summarize_time
from core.models import FinanceStats, KpiReport, ProjectKpiSettings, TimeEntry
from utils.tenant_context import TenantContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_SETTINGS_COLUMNS = (
    "budget", "target_margin_percent", "planned_duration_days",
    "extra_costs", "notify_on_zero_margin", "notify_email",
)


class ProjectKpiService:
    """Service for project KPI settings and finance figures."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, event_bus: EventBus):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus

    def _require_project(self, ctx: TenantContext, project_id: UUID) -> None:
        row = self.postgres.execute_single(
            "SELECT id FROM projects WHERE id = %s AND tenant_id = %s",
            (project_id, ctx.tenant_id),
            tenant_id=ctx.tenant_id,
        )
        if row is None:
            raise ValueError(f"Project {project_id} not found")

    def _settings_row(self, ctx: TenantContext, project_id: UUID) -> dict | None:
        return self.postgres.execute_single(
            "SELECT * FROM project_kpi_settings WHERE tenant_id = %s AND project_id = %s",
            (ctx.tenant_id, project_id),
            tenant_id=ctx.tenant_id,
        )

    def get_settings(self, ctx: TenantContext, project_id: UUID) -> ProjectKpiSettings:
        """Stored settings, or empty defaults if the owner never saved any."""
        self._require_project(ctx, project_id)
        row = self._settings_row(ctx, project_id)
        if row is None:
            return ProjectKpiSettings()
        return ProjectKpiSettings.model_validate({k: row[k] for k in _SETTINGS_COLUMNS})

    def list_time_entries(self, ctx: TenantContext, project_id: UUID) -> list[TimeEntry]:
        """Time entries of a project joined with employee name and hourly rate."""
        rows = self.postgres.execute(
            """
            SELECT
                t.employee_id,
                NULLIF(TRIM(CONCAT_WS(' ', TRIM(e.first_name), TRIM(e.last_name))), '') AS employee_name,
                e.hourly_rate,
                t.start_time,
                t.end_time,
                t.break_minutes
            FROM time_entries t
            LEFT JOIN employees e ON e.id = t.employee_id
            WHERE t.tenant_id = %s AND t.project_id = %s
            ORDER BY t.work_date, t.start_time
            """,
            (ctx.tenant_id, project_id),
            tenant_id=ctx.tenant_id,
        )
        return [TimeEntry.model_validate(row) for row in rows]

    def _build_report(
        self, ctx: TenantContext, project_id: UUID, settings: ProjectKpiSettings
    ) -> KpiReport:
        time_stats = summarize_time(aggregate_time_entries(self.list_time_entries(ctx, project_id)))
        return KpiReport(
            project_id=project_id,
            settings=settings,
            time_stats=time_stats,
            finance=compute_finance(settings, time_stats),
        )

    def get_report(self, ctx: TenantContext, project_id: UUID) -> KpiReport:
        """
        Settings, time statistics and finance figures for a project.

        Raises:
            ValueError: If the project is not found
        """
        settings = self.get_settings(ctx, project_id)
        report = self._build_report(ctx, project_id, settings)
        self._observe_margin(ctx, project_id, settings, report.finance)
        return report

    def save_settings(
        self, ctx: TenantContext, project_id: UUID, settings: ProjectKpiSettings
    ) -> KpiReport:
        """
        Store KPI settings and return the recomputed report.

        Raises:
            ValueError: If the project is not found
        """
        self._require_project(ctx, project_id)
        previous = self._settings_row(ctx, project_id)
        now = now_utc()

        values = settings.model_dump()
        self.postgres.execute(
            """
            INSERT INTO project_kpi_settings (
                tenant_id, project_id, budget, target_margin_percent, planned_duration_days,
                extra_costs, notify_on_zero_margin, notify_email, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (tenant_id, project_id) DO UPDATE SET
                budget = EXCLUDED.budget,
                target_margin_percent = EXCLUDED.target_margin_percent,
                planned_duration_days = EXCLUDED.planned_duration_days,
                extra_costs = EXCLUDED.extra_costs,
                notify_on_zero_margin = EXCLUDED.notify_on_zero_margin,
                notify_email = EXCLUDED.notify_email,
                updated_at = EXCLUDED.updated_at
            """,
            (
                ctx.tenant_id, project_id, *(values[k] for k in _SETTINGS_COLUMNS), now, now,
            ),
            tenant_id=ctx.tenant_id,
        )

        old_values = {k: previous[k] for k in _SETTINGS_COLUMNS} if previous else {}
        changes = compute_changes(
            ProjectKpiSettings.model_validate(old_values).model_dump(mode="json") if previous else {},
            settings.model_dump(mode="json"),
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="project_kpi_settings",
                entity_id=project_id,
                action=AuditAction.UPDATE if previous else AuditAction.CREATE,
                changes=changes
            )

        report = self._build_report(ctx, project_id, settings)
        self._observe_margin(ctx, project_id, settings, report.finance)
        return report

    def _observe_margin(
        self,
        ctx: TenantContext,
        project_id: UUID,
        settings: ProjectKpiSettings,
        finance: FinanceStats,
    ) -> bool:
        """
        Record the margin sign; publish MarginDepleted on a downward crossing.

        The crossing is claimed with a conditional update, so of several
        processes seeing the same crossing only one publishes.

        Returns:
            True if the alert was published
        """
        row = self._settings_row(ctx, project_id)
        if row is None:
            return False

        previous_positive = row.get("last_margin_positive")
        positive = MarginWatch.is_positive(finance.margin_percent)

        if MarginWatch.crossed_to_zero(previous_positive, finance.margin_percent):
            claimed = self.postgres.execute_returning(
                """
                UPDATE project_kpi_settings
                SET last_margin_positive = FALSE
                WHERE tenant_id = %s AND project_id = %s AND last_margin_positive IS TRUE
                RETURNING project_id
                """,
                (ctx.tenant_id, project_id),
                tenant_id=ctx.tenant_id,
            )
            if not claimed or not settings.notify_on_zero_margin:
                return False

            logger.info(f"Margin of project {project_id} crossed to {finance.margin_percent} %")
            self.event_bus.publish(
                MarginDepleted.create(ctx.tenant_id, project_id, finance, settings.notify_email)
            )
            return True

        if positive != previous_positive:
            self.postgres.execute(
                """
                UPDATE project_kpi_settings
                SET last_margin_positive = %s
                WHERE tenant_id = %s AND project_id = %s
                """,
                (positive, ctx.tenant_id, project_id),
                tenant_id=ctx.tenant_id,
            )
        return False

"""dialedin report tables

Revision ID: 0001_dialedin_tables
Revises:
Create Date: 2026-10-17 00:00:00

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_dialedin_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dialedin_reports",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("report_type", sa.String(), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("date_range_start", sa.Date(), nullable=True),
        sa.Column("date_range_end", sa.Date(), nullable=True),
        sa.Column("raw_file_url", sa.Text(), nullable=True),
        sa.Column("s3_file_key", sa.Text(), nullable=True),
        sa.Column("row_count", sa.Integer(), nullable=True),
        sa.Column("ingestion_source", sa.String(), nullable=False),
        sa.Column("ingestion_status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("raw_metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("filename", "report_type", "report_date", name="uq_dialedin_reports_file_type_date"),
    )
    op.create_index("ix_dialedin_reports_date", "dialedin_reports", ["report_date"])
    op.create_index("ix_dialedin_reports_status", "dialedin_reports", ["ingestion_status"])

    op.create_table(
        "dialedin_daily_kpis",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False, unique=True),
        sa.Column("total_agents", sa.Integer(), nullable=False),
        sa.Column("agents_with_transfers", sa.Integer(), nullable=False),
        sa.Column("total_dials", sa.Integer(), nullable=False),
        sa.Column("total_connects", sa.Integer(), nullable=False),
        sa.Column("total_contacts", sa.Integer(), nullable=False),
        sa.Column("total_transfers", sa.Integer(), nullable=False),
        sa.Column("total_man_hours", sa.Float(), nullable=False),
        sa.Column("total_talk_time_min", sa.Float(), nullable=False),
        sa.Column("total_wait_time_min", sa.Float(), nullable=False),
        sa.Column("total_wrap_time_min", sa.Float(), nullable=False),
        sa.Column("connect_rate", sa.Float(), nullable=True),
        sa.Column("contact_rate", sa.Float(), nullable=True),
        sa.Column("conversion_rate", sa.Float(), nullable=True),
        sa.Column("transfers_per_hour", sa.Float(), nullable=True),
        sa.Column("dials_per_hour", sa.Float(), nullable=True),
        sa.Column("dead_air_ratio", sa.Float(), nullable=True),
        sa.Column("hung_up_ratio", sa.Float(), nullable=True),
        sa.Column("waste_rate", sa.Float(), nullable=True),
        sa.Column("transfer_success_rate", sa.Float(), nullable=True),
        sa.Column("prev_day_transfers", sa.Integer(), nullable=True),
        sa.Column("prev_day_tph", sa.Float(), nullable=True),
        sa.Column("delta_transfers", sa.Integer(), nullable=True),
        sa.Column("delta_tph", sa.Float(), nullable=True),
        sa.Column("is_partial", sa.Boolean(), nullable=False),
        sa.Column("dispositions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("distribution", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("raw_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "dialedin_agent_performance",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("agent_name", sa.String(), nullable=False),
        sa.Column("team", sa.String(), nullable=True),
        sa.Column("skill", sa.String(), nullable=True),
        sa.Column("subcampaign", sa.String(), nullable=True),
        sa.Column("dials", sa.Integer(), nullable=False),
        sa.Column("connects", sa.Integer(), nullable=False),
        sa.Column("contacts", sa.Integer(), nullable=False),
        sa.Column("transfers", sa.Integer(), nullable=False),
        sa.Column("hours_worked", sa.Float(), nullable=False),
        sa.Column("talk_time_min", sa.Float(), nullable=False),
        sa.Column("wait_time_min", sa.Float(), nullable=False),
        sa.Column("wrap_time_min", sa.Float(), nullable=False),
        sa.Column("logged_in_time_min", sa.Float(), nullable=False),
        sa.Column("tph", sa.Float(), nullable=True),
        sa.Column("connects_per_hour", sa.Float(), nullable=True),
        sa.Column("connect_rate", sa.Float(), nullable=True),
        sa.Column("conversion_rate", sa.Float(), nullable=True),
        sa.Column("dead_air_ratio", sa.Float(), nullable=True),
        sa.Column("dispositions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("tph_rank", sa.Integer(), nullable=True),
        sa.Column("conversion_rank", sa.Integer(), nullable=True),
        sa.Column("dials_rank", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_dialedin_agent_performance_date", "dialedin_agent_performance", ["report_date"])

    op.create_table(
        "dialedin_skill_summary",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("skill", sa.String(), nullable=False),
        sa.Column("subcampaign", sa.String(), nullable=True),
        sa.Column("agent_count", sa.Integer(), nullable=False),
        sa.Column("total_dials", sa.Integer(), nullable=False),
        sa.Column("total_connects", sa.Integer(), nullable=False),
        sa.Column("total_contacts", sa.Integer(), nullable=False),
        sa.Column("total_transfers", sa.Integer(), nullable=False),
        sa.Column("total_man_hours", sa.Float(), nullable=False),
        sa.Column("avg_tph", sa.Float(), nullable=True),
        sa.Column("connect_rate", sa.Float(), nullable=True),
        sa.Column("conversion_rate", sa.Float(), nullable=True),
        sa.Column("dispositions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_dialedin_skill_summary_date", "dialedin_skill_summary", ["report_date"])

    op.create_table(
        "dialedin_anomalies",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("anomaly_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("agent_name", sa.String(), nullable=True),
        sa.Column("skill", sa.String(), nullable=True),
        sa.Column("metric_name", sa.String(), nullable=True),
        sa.Column("metric_value", sa.Float(), nullable=True),
        sa.Column("threshold_value", sa.Float(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_dialedin_anomalies_date", "dialedin_anomalies", ["report_date"])


def downgrade() -> None:
    op.drop_index("ix_dialedin_anomalies_date", table_name="dialedin_anomalies")
    op.drop_table("dialedin_anomalies")
    op.drop_index("ix_dialedin_skill_summary_date", table_name="dialedin_skill_summary")
    op.drop_table("dialedin_skill_summary")
    op.drop_index("ix_dialedin_agent_performance_date", table_name="dialedin_agent_performance")
    op.drop_table("dialedin_agent_performance")
    op.drop_table("dialedin_daily_kpis")
    op.drop_index("ix_dialedin_reports_status", table_name="dialedin_reports")
    op.drop_index("ix_dialedin_reports_date", table_name="dialedin_reports")
    op.drop_table("dialedin_reports")

"""create vms, vm_metrics, reset_history and system_config

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "vms",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("hostname", sa.String(), nullable=False),
        sa.Column("vmid", sa.String(), nullable=False),
        sa.Column("node", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="unknown"),
        sa.Column("cpu_usage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("ram_usage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("ram_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("disk_usage", sa.Float(), nullable=True),
        sa.Column("disk_total", sa.Float(), nullable=True),
        sa.Column("uptime", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_heartbeat", sa.DateTime(), nullable=False),
        sa.Column("is_down", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_warning", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reset_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reset", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_vms_hostname", "vms", ["hostname"], unique=True)

    op.create_table(
        "vm_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("vm_id", sa.String(36), sa.ForeignKey("vms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("cpu_usage", sa.Float(), nullable=False),
        sa.Column("ram_usage", sa.Float(), nullable=False),
        sa.Column("ram_total", sa.Float(), nullable=False),
        sa.Column("disk_usage", sa.Float(), nullable=True),
        sa.Column("disk_total", sa.Float(), nullable=True),
        sa.Column("uptime", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_vm_metrics_vm_id_timestamp", "vm_metrics", ["vm_id", "timestamp"])

    op.create_table(
        "reset_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("vm_id", sa.String(36), sa.ForeignKey("vms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("proxmox_response", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_reset_history_vm_id_timestamp", "reset_history", ["vm_id", "timestamp"])

    op.create_table(
        "system_config",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("stale_timeout_ms", sa.Integer(), nullable=True),
        sa.Column("cpu_threshold", sa.Float(), nullable=True),
        sa.Column("ram_threshold", sa.Float(), nullable=True),
        sa.Column("auto_reset_enabled", sa.Boolean(), nullable=True),
        sa.Column("reset_retry_count", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )


def downgrade():
    op.drop_table("system_config")
    op.drop_index("ix_reset_history_vm_id_timestamp", table_name="reset_history")
    op.drop_table("reset_history")
    op.drop_index("ix_vm_metrics_vm_id_timestamp", table_name="vm_metrics")
    op.drop_table("vm_metrics")
    op.drop_index("ix_vms_hostname", table_name="vms")
    op.drop_table("vms")

"""initial program engine schema"""

from alembic import op
import sqlalchemy as sa


revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None

_STATUS_CHECK = "status in ('planned', 'in_progress', 'completed', 'skipped')"


def upgrade() -> None:
    # Catalog
    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
    )
    op.create_table(
        "movement_patterns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
    )
    op.create_table(
        "movement_library_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=80), nullable=False, unique=True),
        sa.Column("name", sa.String(length=160), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("pattern_id", sa.Integer(), sa.ForeignKey("movement_patterns.id"), nullable=True),
        sa.Column("movement_type", sa.String(length=40), nullable=False, server_default="strength"),
        sa.Column("required_equipment", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("sport_vector", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_table(
        "movement_library_tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("movement_library_entries.id"), nullable=False),
        sa.Column("tag", sa.String(length=60), nullable=False),
        sa.UniqueConstraint("entry_id", "tag", name="uq_library_tag"),
    )
    op.create_index("ix_movement_library_tags_entry_id", "movement_library_tags", ["entry_id"])
    op.create_table(
        "movement_contraindications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("movement_library_entries.id"), nullable=False),
        sa.Column("condition", sa.String(length=120), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False, server_default="caution"),
    )
    op.create_index("ix_movement_contraindications_entry_id", "movement_contraindications", ["entry_id"])
    op.create_table(
        "movement_library_impacts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("movement_library_entries.id"), nullable=False),
        sa.Column("module_key", sa.String(length=40), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.UniqueConstraint("entry_id", "module_key", name="uq_library_impact"),
    )
    op.create_index("ix_movement_library_impacts_entry_id", "movement_library_impacts", ["entry_id"])
    op.create_table(
        "movement_library_view",
        sa.Column("entry_id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=80), nullable=False, unique=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("pattern", sa.String(length=120), nullable=True),
        sa.Column("movement_type", sa.String(length=40), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("contraindications", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("required_equipment", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("module_impact_vector", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("sport_vector", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("refreshed_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_table(
        "movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=80), nullable=True, unique=True),
        sa.Column("name", sa.String(length=160), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("pattern", sa.String(length=120), nullable=True),
        sa.Column("movement_type", sa.String(length=40), nullable=False, server_default="strength"),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("contraindications", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("required_equipment", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("module_impact_vector", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("sport_vector", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("in_library", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("synced_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    # Templates
    op.create_table(
        "program_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_weeks", sa.Integer(), nullable=False),
        sa.Column("workouts_per_week", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("slug", "version", name="uq_program_template_version"),
        sa.CheckConstraint("workouts_per_week between 1 and 7"),
        sa.CheckConstraint("duration_weeks >= 1"),
    )
    op.create_index("ix_program_templates_slug", "program_templates", ["slug"])
    op.create_table(
        "template_phases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("program_templates.id"), nullable=False),
        sa.Column("phase_index", sa.Integer(), nullable=False),
        sa.Column("week_count", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
    )
    op.create_index("ix_template_phases_program_id", "template_phases", ["program_id"])
    op.create_table(
        "template_weeks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("program_templates.id"), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("template_phases.id"), nullable=True),
        sa.Column("week_index", sa.Integer(), nullable=False),
        sa.Column("phase_week_index", sa.Integer(), nullable=True),
        sa.UniqueConstraint("program_id", "week_index", name="uq_template_week"),
    )
    op.create_index("ix_template_weeks_program_id", "template_weeks", ["program_id"])
    op.create_table(
        "template_workouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("week_id", sa.Integer(), sa.ForeignKey("template_weeks.id"), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=160), nullable=False),
        sa.UniqueConstraint("week_id", "day_index", name="uq_template_workout_day"),
    )
    op.create_index("ix_template_workouts_week_id", "template_workouts", ["week_id"])
    op.create_table(
        "template_blocks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workout_id", sa.Integer(), sa.ForeignKey("template_workouts.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=False),
    )
    op.create_index("ix_template_blocks_workout_id", "template_blocks", ["workout_id"])
    op.create_table(
        "template_block_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("template_blocks.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("movement_id", sa.Integer(), sa.ForeignKey("movements.id"), nullable=False),
        sa.Column("base_dose", sa.JSON(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_template_block_items_block_id", "template_block_items", ["block_id"])
    op.create_index("ix_template_block_items_movement_id", "template_block_items", ["movement_id"])

    # Instances
    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("program_templates.id"), nullable=True),
        sa.Column("program_slug_snapshot", sa.String(length=80), nullable=False),
        sa.Column("program_name_snapshot", sa.String(length=160), nullable=False),
        sa.Column("template_version_snapshot", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("workouts_per_week", sa.Integer(), nullable=False),
        sa.Column("weekday_offsets", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_status", "enrollments", ["status"])
    op.create_table(
        "workout_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enrollment_id", sa.String(length=32), sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("week_index", sa.Integer(), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("phase_index", sa.Integer(), nullable=True),
        sa.Column("phase_week_index", sa.Integer(), nullable=True),
        sa.Column("title_snapshot", sa.String(length=160), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="planned"),
        sa.Column("rpe_session", sa.Float(), nullable=True),
        sa.Column("duration_minutes_actual", sa.Integer(), nullable=True),
        sa.Column("user_notes", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("enrollment_id", "scheduled_date", name="uq_workout_instance_date"),
        sa.CheckConstraint(_STATUS_CHECK),
    )
    op.create_index("ix_workout_instances_enrollment_id", "workout_instances", ["enrollment_id"])
    op.create_index("ix_workout_instances_scheduled_date", "workout_instances", ["scheduled_date"])
    op.create_table(
        "block_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workout_instance_id", sa.Integer(), sa.ForeignKey("workout_instances.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("block_name_snapshot", sa.String(length=160), nullable=False),
        sa.Column("category_label_snapshot", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_block_instances_workout_instance_id", "block_instances", ["workout_instance_id"])
    op.create_table(
        "block_item_instances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("block_instance_id", sa.Integer(), sa.ForeignKey("block_instances.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("movement_id", sa.Integer(), sa.ForeignKey("movements.id"), nullable=False),
        sa.Column("movement_name_snapshot", sa.String(length=160), nullable=False),
        sa.Column("base_dose_snapshot", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("planned_dose", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("actual_dose", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="planned"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(_STATUS_CHECK),
    )
    op.create_index("ix_block_item_instances_block_instance_id", "block_item_instances", ["block_instance_id"])
    op.create_index("ix_block_item_instances_movement_id", "block_item_instances", ["movement_id"])


def downgrade() -> None:
    for table in (
        "block_item_instances",
        "block_instances",
        "workout_instances",
        "enrollments",
        "template_block_items",
        "template_blocks",
        "template_workouts",
        "template_weeks",
        "template_phases",
        "program_templates",
        "movements",
        "movement_library_view",
        "movement_library_impacts",
        "movement_contraindications",
        "movement_library_tags",
        "movement_library_entries",
        "movement_patterns",
        "equipment",
    ):
        op.drop_table(table)

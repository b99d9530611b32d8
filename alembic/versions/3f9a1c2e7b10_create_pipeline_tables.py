"""Create catalog, trending and identity tables

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2e7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

catalog_entity_status = sa.Enum(
    "pending", "complete", name="catalog_entity_status_enum"
)
match_source = sa.Enum("manual", "auto", name="match_source_enum")
conflict_reason = sa.Enum("no-good-candidate", "exception", name="conflict_reason_enum")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "catalog_entities",
        sa.Column("external_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("name_original", sa.String(length=255), nullable=True),
        sa.Column("released", sa.Date(), nullable=True),
        sa.Column("background_image", sa.Text(), nullable=True),
        sa.Column("suggestions_count", sa.Integer(), nullable=True),
        sa.Column("platforms", sa.Text(), nullable=True),
        sa.Column("developers", sa.Text(), nullable=True),
        sa.Column("publishers", sa.Text(), nullable=True),
        sa.Column("genres", sa.Text(), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column("esrb_rating", sa.Text(), nullable=True),
        sa.Column("alternative_names", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("screenshots_count", sa.Integer(), nullable=True),
        sa.Column("achievements_count", sa.Integer(), nullable=True),
        sa.Column("game_series_count", sa.Integer(), nullable=True),
        sa.Column("additions_count", sa.Integer(), nullable=True),
        sa.Column("parents_count", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            catalog_entity_status,
            server_default="pending",
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("external_id"),
    )
    op.create_index(
        "ix_catalog_entities_status_updated_at",
        "catalog_entities",
        ["status", "updated_at"],
        unique=False,
    )
    op.create_index(
        "ix_catalog_entities_updated_at", "catalog_entities", ["updated_at"], unique=False
    )

    op.create_table(
        "sync_checkpoint",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_sync_checkpoint_singleton"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "trending_snapshot",
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("native_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("snapshot_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("score_rank", sa.Float(), nullable=True),
        sa.Column("positive", sa.BigInteger(), nullable=True),
        sa.Column("negative", sa.BigInteger(), nullable=True),
        sa.Column("userscore", sa.Float(), nullable=True),
        sa.Column("owners", sa.Text(), nullable=True),
        sa.Column("average_forever", sa.BigInteger(), nullable=True),
        sa.Column("average_2weeks", sa.BigInteger(), nullable=True),
        sa.Column("median_forever", sa.BigInteger(), nullable=True),
        sa.Column("median_2weeks", sa.BigInteger(), nullable=True),
        sa.Column("ccu", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("batch_id", "native_id"),
    )
    op.create_index(
        "ix_trending_snapshot_snapshot_time", "trending_snapshot", ["snapshot_time"], unique=False
    )
    op.create_index(
        "ix_trending_snapshot_native_id_snapshot_time",
        "trending_snapshot",
        ["native_id", "snapshot_time"],
        unique=False,
    )

    op.create_table(
        "identity_mapping",
        sa.Column("source_native_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("target_id", sa.BigInteger(), nullable=False),
        sa.Column("source", match_source, nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("metadata", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("source_native_id"),
    )
    op.create_index(
        "ix_identity_mapping_target_id", "identity_mapping", ["target_id"], unique=False
    )

    op.create_table(
        "match_conflicts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_native_id", sa.BigInteger(), nullable=False),
        sa.Column("payload", JSON_TYPE, nullable=True),
        sa.Column("reason", conflict_reason, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_match_conflicts_source_native_id_created_at",
        "match_conflicts",
        ["source_native_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "job_locks",
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
    op.drop_table("job_locks")
    op.drop_index("ix_match_conflicts_source_native_id_created_at", table_name="match_conflicts")
    op.drop_table("match_conflicts")
    op.drop_index("ix_identity_mapping_target_id", table_name="identity_mapping")
    op.drop_table("identity_mapping")
    op.drop_index("ix_trending_snapshot_native_id_snapshot_time", table_name="trending_snapshot")
    op.drop_index("ix_trending_snapshot_snapshot_time", table_name="trending_snapshot")
    op.drop_table("trending_snapshot")
    op.drop_table("sync_checkpoint")
    op.drop_index("ix_catalog_entities_updated_at", table_name="catalog_entities")
    op.drop_index("ix_catalog_entities_status_updated_at", table_name="catalog_entities")
    op.drop_table("catalog_entities")

    bind = op.get_bind()
    conflict_reason.drop(bind, checkfirst=True)
    match_source.drop(bind, checkfirst=True)
    catalog_entity_status.drop(bind, checkfirst=True)

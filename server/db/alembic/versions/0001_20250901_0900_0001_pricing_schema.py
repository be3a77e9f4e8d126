"""Package pricing schema

Revision ID: 0001
Revises:
Create Date: 2025-09-01 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create packages table
    op.create_table('packages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('duration_nights', sa.Integer(), nullable=True),
        sa.Column('pricing_module', sa.String(length=32), nullable=False),
        sa.Column('flight_source', sa.String(length=16), nullable=False),
        sa.Column('upstream_product_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(currency) = 3', name='ck_package_currency_length'),
        sa.CheckConstraint('duration_nights IS NULL OR duration_nights > 0', name='ck_package_duration_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_packages_slug'), 'packages', ['slug'], unique=True)

    # Create package_seasons table
    op.create_table('package_seasons',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('package_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('label', sa.String(length=120), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('land_cost_per_person', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('hotel_cost_per_person', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('start_date <= end_date', name='ck_season_start_before_end'),
        sa.CheckConstraint('land_cost_per_person > 0', name='ck_season_land_cost_positive'),
        sa.CheckConstraint(
            'hotel_cost_per_person IS NULL OR hotel_cost_per_person >= 0',
            name='ck_season_hotel_cost_non_negative'
        ),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_package_seasons_package_id'), 'package_seasons', ['package_id'], unique=False)
    op.create_index(op.f('ix_package_seasons_start_date'), 'package_seasons', ['start_date'], unique=False)

    # Create departures table
    op.create_table('departures',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('package_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('duration_nights', sa.Integer(), nullable=True),
        sa.Column('available_spots', sa.Integer(), nullable=True),
        sa.Column('is_sold_out', sa.Boolean(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('package_id', 'source_id', name='uq_departure_package_source')
    )
    op.create_index(op.f('ix_departures_package_id'), 'departures', ['package_id'], unique=False)
    op.create_index(op.f('ix_departures_departure_date'), 'departures', ['departure_date'], unique=False)

    # Create departure_rates table
    op.create_table('departure_rates',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('departure_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('source_rate_id', sa.String(length=64), nullable=True),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('room_category', sa.String(length=16), nullable=False),
        sa.Column('hotel_category', sa.String(length=32), nullable=True),
        sa.Column('land_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('original_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('original_currency', sa.String(length=3), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('land_price >= 0', name='ck_rate_land_price_non_negative'),
        sa.CheckConstraint(
            "room_category IN ('single', 'twin', 'triple', 'standard')",
            name='ck_rate_room_category'
        ),
        sa.ForeignKeyConstraint(['departure_id'], ['departures.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('departure_id', 'title', 'room_category', 'hotel_category', name='uq_rate_departure_key')
    )
    op.create_index(op.f('ix_departure_rates_departure_id'), 'departure_rates', ['departure_id'], unique=False)

    # Create rate_flight_augmentations table
    op.create_table('rate_flight_augmentations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('airport_code', sa.String(length=3), nullable=False),
        sa.Column('airport_name', sa.String(length=120), nullable=False),
        sa.Column('flight_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('combined_price', sa.Integer(), nullable=False),
        sa.Column('markup_percent', sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('flight_price >= 0', name='ck_augmentation_flight_price_non_negative'),
        sa.CheckConstraint('combined_price >= 0', name='ck_augmentation_combined_price_non_negative'),
        sa.ForeignKeyConstraint(['rate_id'], ['departure_rates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rate_id', 'airport_code', name='uq_augmentation_rate_airport')
    )
    op.create_index(
        op.f('ix_rate_flight_augmentations_rate_id'), 'rate_flight_augmentations', ['rate_id'], unique=False
    )

    # Create pricing_entries table
    op.create_table('pricing_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('package_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('departure_airport', sa.String(length=3), nullable=False),
        sa.Column('departure_airport_name', sa.String(length=120), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_pricing_entry_price_non_negative'),
        sa.CheckConstraint('length(currency) = 3', name='ck_pricing_entry_currency_length'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'package_id', 'departure_airport', 'departure_date',
            name='uq_pricing_entry_package_airport_date'
        )
    )
    op.create_index(op.f('ix_pricing_entries_package_id'), 'pricing_entries', ['package_id'], unique=False)

    # Create pricing_runs table
    op.create_table('pricing_runs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('package_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.Column('parameters', sa.JSON(), nullable=False),
        sa.Column('summary', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(actor) > 0', name='ck_pricing_run_actor_not_empty'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pricing_runs_package_id'), 'pricing_runs', ['package_id'], unique=False)
    op.create_index(op.f('ix_pricing_runs_created_at'), 'pricing_runs', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('pricing_runs')
    op.drop_table('pricing_entries')
    op.drop_table('rate_flight_augmentations')
    op.drop_table('departure_rates')
    op.drop_table('departures')
    op.drop_table('package_seasons')
    op.drop_table('packages')

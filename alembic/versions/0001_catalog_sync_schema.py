"""Catalog sync schema - master catalog, suppliers, priorities, runs and snapshots

Revision ID: 0001_catalog_sync_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_catalog_sync_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UTC_NOW = sa.text("timezone('utc', now())")


def _timestamps(with_updated=True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False)]
    if with_updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        'retail_verticals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False, unique=True),
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('slug', sa.String(), nullable=False, unique=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('credentials', sa.JSON(), nullable=True),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('retail_vertical_id', sa.Integer(), sa.ForeignKey('retail_verticals.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_suppliers_slug', 'suppliers', ['slug'])

    op.create_table(
        'supplier_vertical_priorities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('retail_vertical_id', sa.Integer(), sa.ForeignKey('retail_verticals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('retail_vertical_id', 'priority', name='uq_vertical_priority'),
        sa.UniqueConstraint('supplier_id', 'retail_vertical_id', name='uq_supplier_vertical'),
        sa.CheckConstraint('priority >= 1 AND priority <= 25', name='ck_priority_range'),
    )

    op.create_table(
        'master_products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('upc', sa.String(14), nullable=False, unique=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('brand', sa.String()),
        sa.Column('model', sa.String()),
        sa.Column('manufacturer_part_number', sa.String()),
        sa.Column('alt_id_1', sa.String()),
        sa.Column('alt_id_2', sa.String()),
        sa.Column('category', sa.String()),
        sa.Column('subcategory1', sa.String()),
        sa.Column('subcategory2', sa.String()),
        sa.Column('subcategory3', sa.String()),
        sa.Column('caliber', sa.String()),
        sa.Column('barrel_length', sa.String()),
        sa.Column('description', sa.Text()),
        sa.Column('image_url', sa.Text()),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('source_locked', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('source_locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('source_locked_by', sa.String(), nullable=True),
        sa.Column('retail_vertical_id', sa.Integer(), sa.ForeignKey('retail_verticals.id'), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        *_timestamps(),
    )
    op.create_index('ix_master_products_upc', 'master_products', ['upc'])
    op.create_index('ix_master_products_source', 'master_products', ['source'])
    op.create_index('ix_master_products_retail_vertical_id', 'master_products', ['retail_vertical_id'])

    op.create_table(
        'supplier_sku_mappings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('upc', sa.String(14), nullable=False),
        sa.Column('supplier_slug', sa.String(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('vendor_sku', sa.String(), nullable=True),
        sa.Column('vendor_cost', sa.Numeric(12, 2), nullable=True),
        sa.Column('map_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('msrp_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('quantity_available', sa.Integer(), nullable=True),
        sa.Column('last_price_update', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('upc', 'supplier_slug', 'company_id', name='uq_sku_mapping'),
    )
    op.create_index('ix_supplier_sku_mappings_upc', 'supplier_sku_mappings', ['upc'])
    op.create_index('ix_supplier_sku_mappings_supplier_slug', 'supplier_sku_mappings', ['supplier_slug'])

    op.create_table(
        'sync_runs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_slug', sa.String(), nullable=False),
        sa.Column('feed_type', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('records_added', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_records', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('triggered_by', sa.String(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_sync_runs_id', 'sync_runs', ['id'])
    op.create_index('ix_sync_runs_pair_started', 'sync_runs', ['supplier_slug', 'feed_type', 'started_at'])

    op.create_table(
        'supplier_feed_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_slug', sa.String(), nullable=False),
        sa.Column('feed_type', sa.String(16), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('content_hash', sa.String(64), nullable=False),
        sa.Column('line_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('supplier_slug', 'feed_type', name='uq_feed_snapshot'),
    )

    op.create_table(
        'supplier_field_mappings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_slug', sa.String(), nullable=False),
        sa.Column('feed_type', sa.String(16), nullable=False),
        sa.Column('column_mappings', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        *_timestamps(),
        sa.UniqueConstraint('supplier_slug', 'feed_type', name='uq_field_mapping'),
    )

    # Seed the firearms vertical and the registered suppliers in rank order
    op.execute("INSERT INTO retail_verticals (id, name, slug) VALUES (1, 'Firearms', 'firearms')")
    op.execute(
        "INSERT INTO suppliers (slug, name, is_enabled, retail_vertical_id) VALUES "
        "('lipseys', 'Lipsey''s', true, 1), "
        "('sports-south', 'Sports South', true, 1), "
        "('chattanooga', 'Chattanooga Shooting Supplies', true, 1), "
        "('bill-hicks', 'Bill Hicks & Co.', true, 1)"
    )
    op.execute(
        "INSERT INTO supplier_vertical_priorities (supplier_id, retail_vertical_id, priority) "
        "SELECT id, 1, CASE slug WHEN 'lipseys' THEN 1 WHEN 'sports-south' THEN 2 "
        "WHEN 'chattanooga' THEN 3 ELSE 4 END FROM suppliers"
    )
    op.execute("SELECT setval('retail_verticals_id_seq', (SELECT MAX(id) FROM retail_verticals))")


def downgrade() -> None:
    op.drop_table('supplier_field_mappings')
    op.drop_table('supplier_feed_snapshots')
    op.drop_index('ix_sync_runs_pair_started', table_name='sync_runs')
    op.drop_index('ix_sync_runs_id', table_name='sync_runs')
    op.drop_table('sync_runs')
    op.drop_table('supplier_sku_mappings')
    op.drop_table('master_products')
    op.drop_table('supplier_vertical_priorities')
    op.drop_table('suppliers')
    op.drop_table('retail_verticals')

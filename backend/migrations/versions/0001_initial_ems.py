"""initial maintenance ticketing schema

Revision ID: 0001_initial_ems
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = '0001_initial_ems'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    insp = inspect(op.get_bind())

    if not insp.has_table('config_documents'):
        op.create_table('config_documents',
            sa.Column('key', sa.String(length=32), primary_key=True),
            sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('payload', sa.JSON(), nullable=False),
            _updated_at(),
        )

    if not insp.has_table('branches'):
        op.create_table('branches',
            sa.Column('id', sa.String(length=40), primary_key=True),
            sa.Column('name', sa.String(length=160), nullable=False),
            sa.Column('location', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('manager_id', sa.String(length=40), nullable=True),
            sa.Column('manager_phone', sa.String(length=32), nullable=True),
            _updated_at(),
        )

    if not insp.has_table('staff_users'):
        op.create_table('staff_users',
            sa.Column('id', sa.String(length=40), primary_key=True),
            sa.Column('name', sa.String(length=160), nullable=False),
            sa.Column('role', sa.String(length=32), nullable=False),
            sa.Column('branch_id', sa.String(length=40), nullable=True),
            sa.Column('phone', sa.String(length=32), nullable=True),
            sa.Column('avatar', sa.String(length=255), nullable=True),
            _updated_at(),
        )
        op.create_index('ix_staff_users_role', 'staff_users', ['role'])

    if not insp.has_table('inventory_parts'):
        op.create_table('inventory_parts',
            sa.Column('id', sa.String(length=40), primary_key=True),
            sa.Column('name', sa.String(length=160), nullable=False),
            sa.Column('sku', sa.String(length=64), nullable=False, unique=True),
            sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('min_level', sa.Integer(), nullable=False, server_default='5'),
            sa.Column('category', sa.String(length=80), nullable=False, server_default=''),
            _updated_at(),
        )
        op.create_index('ix_inventory_parts_name', 'inventory_parts', ['name'])
        op.create_index('ix_inventory_parts_sku', 'inventory_parts', ['sku'])

    if not insp.has_table('maintenance_reports'):
        op.create_table('maintenance_reports',
            sa.Column('id', sa.String(length=40), primary_key=True),
            sa.Column('branch_id', sa.String(length=40), nullable=False),
            sa.Column('branch_name', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('created_by_user_id', sa.String(length=40), nullable=False),
            sa.Column('created_by_name', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('created_at', sa.String(length=40), nullable=False),
            sa.Column('priority', sa.String(length=16), nullable=False),
            sa.Column('status', sa.String(length=32), nullable=False),
            sa.Column('machine_type', sa.String(length=120), nullable=False, server_default='General'),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('assigned_technician_id', sa.String(length=40), nullable=True),
            sa.Column('assigned_technician_name', sa.String(length=160), nullable=True),
            sa.Column('dynamic_answers', sa.JSON(), nullable=True),
            sa.Column('dynamic_data', sa.JSON(), nullable=True),
            sa.Column('location_coords', sa.JSON(), nullable=True),
            sa.Column('images_before', sa.JSON(), nullable=True),
            sa.Column('images_after', sa.JSON(), nullable=True),
            sa.Column('cost', sa.Float(), nullable=True),
            sa.Column('parts_used', sa.Text(), nullable=True),
            sa.Column('parts_usage_list', sa.JSON(), nullable=True),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            sa.Column('logs', sa.JSON(), nullable=True),
            _updated_at(),
        )
        op.create_index('ix_maintenance_reports_branch_id', 'maintenance_reports', ['branch_id'])
        op.create_index('ix_maintenance_reports_status', 'maintenance_reports', ['status'])
        op.create_index('ix_maintenance_reports_priority', 'maintenance_reports', ['priority'])
        op.create_index('ix_maintenance_reports_assigned_technician_id', 'maintenance_reports', ['assigned_technician_id'])

    if not insp.has_table('audit_logs'):
        op.create_table('audit_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('actor_user_id', sa.String(length=40), nullable=False),
            sa.Column('actor_role', sa.String(length=32), nullable=True),
            sa.Column('action', sa.String(length=64), nullable=False),
            sa.Column('entity', sa.String(length=64), nullable=True),
            sa.Column('entity_id', sa.String(length=64), nullable=True),
            sa.Column('meta', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        )
        op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
        op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in ('audit_logs', 'maintenance_reports', 'inventory_parts', 'staff_users', 'branches', 'config_documents'):
        op.drop_table(table)

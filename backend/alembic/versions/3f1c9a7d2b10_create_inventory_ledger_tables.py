"""create inventory ledger tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-18 10:12:41.508113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


project_status = sa.Enum('PLANNING', 'ACTIVE', 'ON_HOLD', 'COMPLETED', name='projectstatus')
material_status = sa.Enum('ACTIVE', 'INACTIVE', 'DISCONTINUED', name='materialstatus')
transaction_type = sa.Enum('PURCHASE', 'ISSUE', 'RETURN', 'TRANSFER', 'ADJUSTMENT', name='transactiontype')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def upgrade() -> None:
    """Create users, projects, materials, inventory_history and audit_log."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('status', project_status, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )
    op.create_index(op.f('ix_projects_id'), 'projects', ['id'], unique=False)

    op.create_table(
        'materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('item_code', sa.String(length=50), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('type', sa.String(length=100), nullable=True),
        sa.Column('unit', sa.String(length=50), nullable=True),
        sa.Column('cost_per_unit', sa.Numeric(12, 2), nullable=True),
        sa.Column('supplier', sa.String(), nullable=True),
        sa.Column('stock_qty', sa.Numeric(12, 3), nullable=False),
        sa.Column('minimum_stock_level', sa.Numeric(12, 3), nullable=False),
        sa.Column('maximum_stock_level', sa.Numeric(12, 3), nullable=False),
        sa.Column('reorder_point', sa.Numeric(12, 3), nullable=False),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('status', material_status, nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(), nullable=True),
        sa.CheckConstraint('stock_qty >= 0', name='ck_materials_stock_qty_non_negative'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('item_code'),
    )
    op.create_index(op.f('ix_materials_id'), 'materials', ['id'], unique=False)
    op.create_index(op.f('ix_materials_name'), 'materials', ['name'], unique=False)
    op.create_index(op.f('ix_materials_project_id'), 'materials', ['project_id'], unique=False)

    op.create_table(
        'inventory_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('quantity_change', sa.Numeric(12, 3), nullable=False),
        sa.Column('quantity_before', sa.Numeric(12, 3), nullable=False),
        sa.Column('quantity_after', sa.Numeric(12, 3), nullable=False),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_inventory_history_id'), 'inventory_history', ['id'], unique=False)
    op.create_index(op.f('ix_inventory_history_material_id'), 'inventory_history', ['material_id'], unique=False)
    op.create_index(op.f('ix_inventory_history_project_id'), 'inventory_history', ['project_id'], unique=False)
    op.create_index(op.f('ix_inventory_history_transaction_type'), 'inventory_history', ['transaction_type'], unique=False)
    op.create_index(op.f('ix_inventory_history_transaction_id'), 'inventory_history', ['transaction_id'], unique=False)
    op.create_index(op.f('ix_inventory_history_reference_number'), 'inventory_history', ['reference_number'], unique=False)
    op.create_index(op.f('ix_inventory_history_transaction_date'), 'inventory_history', ['transaction_date'], unique=False)

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_name', sa.String(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_log_id'), 'audit_log', ['id'], unique=False)


def downgrade() -> None:
    """Drop the ledger tables and their enum types."""
    op.drop_index(op.f('ix_audit_log_id'), table_name='audit_log')
    op.drop_table('audit_log')
    for index in ('transaction_date', 'reference_number', 'transaction_id', 'transaction_type', 'project_id', 'material_id', 'id'):
        op.drop_index(op.f(f'ix_inventory_history_{index}'), table_name='inventory_history')
    op.drop_table('inventory_history')
    for index in ('project_id', 'name', 'id'):
        op.drop_index(op.f(f'ix_materials_{index}'), table_name='materials')
    op.drop_table('materials')
    op.drop_index(op.f('ix_projects_id'), table_name='projects')
    op.drop_table('projects')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (transaction_type, material_status, project_status):
        enum_type.drop(bind, checkfirst=True)

"""initial schema

Revision ID: 3a91c0d2e7f4
Revises:
Create Date: 2026-10-17 10:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a91c0d2e7f4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True, unique=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'patients',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('subject_id', sa.String(), sa.ForeignKey('users.id'), nullable=True, unique=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('access_code', sa.String(32), nullable=False),
        sa.Column('code_expiry', sa.DateTime(timezone=True), nullable=False),
        sa.Column('code_status', sa.String(16), server_default='ACTIVE', nullable=False),
        sa.Column('diet_level', sa.Integer(), server_default='1', nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('height', sa.String(), nullable=True),
        sa.Column('initial_weight', sa.Numeric(6, 2), nullable=True),
        sa.Column('target_weight', sa.Numeric(6, 2), nullable=True),
        sa.Column('medical_notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("code_status in ('ACTIVE','REVOKED')", name='ck_patients_code_status'),
        sa.CheckConstraint('diet_level between 1 and 5', name='ck_patients_diet_level'),
    )
    op.create_index('ix_patients_access_code', 'patients', ['access_code'], unique=True)
    op.create_index('idx_patients_active_created', 'patients', ['is_active', 'created_at'])

    op.create_table(
        'professionals',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('subject_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('specialty', sa.String(255), nullable=True),
        sa.Column('license_number', sa.String(50), nullable=True),
        sa.Column('access_code', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_professionals_subject_id', 'professionals', ['subject_id'], unique=True)
    op.create_index('ix_professionals_access_code', 'professionals', ['access_code'], unique=True)

    op.create_table(
        'weight_records',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('weight', sa.Numeric(6, 2), nullable=False),
        sa.Column('recorded_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_weight_records_patient_time', 'weight_records', ['patient_id', 'created_at'])

    op.create_table(
        'diet_levels',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('glycemic_index', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
    )

    op.create_table(
        'meal_plans',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('diet_level_id', sa.BigInteger(), sa.ForeignKey('diet_levels.id'), nullable=False),
        sa.Column('meal_type', sa.Text(), nullable=False),
        sa.Column('option_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('beverages', sa.JSON(), nullable=True),
        sa.Column('allowed_breads', sa.JSON(), nullable=True),
        sa.Column('proteins', sa.JSON(), nullable=True),
        sa.Column('fruits', sa.JSON(), nullable=True),
        sa.Column('vegetables', sa.JSON(), nullable=True),
        sa.Column('cereals', sa.JSON(), nullable=True),
        sa.Column('others', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
    )

    op.create_table(
        'recipes',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ingredients', sa.JSON(), nullable=False),
        sa.Column('instructions', sa.JSON(), nullable=False),
        sa.Column('preparation_time', sa.Integer(), nullable=True),
        sa.Column('meal_plan_id', sa.BigInteger(), sa.ForeignKey('meal_plans.id'), nullable=True),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
    )

    op.create_table(
        'food_items',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('allowed_in_diet', sa.JSON(), nullable=True),
        sa.Column('quantity', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
    )
    op.create_index('ix_food_items_category', 'food_items', ['category'])

    op.create_table(
        'intermittent_fasting',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id'), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('allowed_drinks', sa.JSON(), nullable=True),
        sa.Column('breakfast_options', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'mood_entries',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id'), nullable=False),
        sa.Column('mood_level', sa.Integer(), nullable=False),
        sa.Column('energy_level', sa.Integer(), nullable=False),
        sa.Column('motivation_level', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('recorded_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('mood_level between 1 and 5', name='ck_mood_entries_mood'),
        sa.CheckConstraint('energy_level between 1 and 5', name='ck_mood_entries_energy'),
        sa.CheckConstraint('motivation_level between 1 and 5', name='ck_mood_entries_motivation'),
    )
    op.create_index('idx_mood_entries_patient_time', 'mood_entries', ['patient_id', 'recorded_date'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_mood_entries_patient_time', table_name='mood_entries')
    op.drop_table('mood_entries')
    op.drop_table('intermittent_fasting')
    op.drop_index('ix_food_items_category', table_name='food_items')
    op.drop_table('food_items')
    op.drop_table('recipes')
    op.drop_table('meal_plans')
    op.drop_table('diet_levels')
    op.drop_index('idx_weight_records_patient_time', table_name='weight_records')
    op.drop_table('weight_records')
    op.drop_index('ix_professionals_access_code', table_name='professionals')
    op.drop_index('ix_professionals_subject_id', table_name='professionals')
    op.drop_table('professionals')
    op.drop_index('idx_patients_active_created', table_name='patients')
    op.drop_index('ix_patients_access_code', table_name='patients')
    op.drop_table('patients')
    op.drop_table('users')

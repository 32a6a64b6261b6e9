"""create user and round_result tables

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 10:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('username_key', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)
        op.create_index('ix_user_username_key', 'user', ['username_key'], unique=True)
    else:
        # Older installs lack the case-insensitive key; backfill it
        user_cols = {c['name'] for c in insp.get_columns('user')}
        if 'username_key' not in user_cols:
            op.add_column('user', sa.Column('username_key', sa.String(length=64), nullable=True))
            op.execute("UPDATE user SET username_key = lower(username) WHERE username_key IS NULL")
            op.create_index('ix_user_username_key', 'user', ['username_key'], unique=True)

    if 'round_result' not in existing_tables:
        op.create_table(
            'round_result',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('was_imposter', sa.Boolean(), nullable=False),
            sa.Column('won', sa.Boolean(), nullable=False),
            sa.Column('vote_correct', sa.Boolean(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_round_result_user_id', 'round_result', ['user_id'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'round_result' in existing_tables:
        op.drop_index('ix_round_result_user_id', table_name='round_result')
        op.drop_table('round_result')
    if 'user' in existing_tables:
        op.drop_index('ix_user_username_key', table_name='user')
        op.drop_index('ix_user_username', table_name='user')
        op.drop_table('user')

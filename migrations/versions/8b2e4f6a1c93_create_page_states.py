"""create page_states

Revision ID: 8b2e4f6a1c93
Revises: 3f1c9a7d2b10
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b2e4f6a1c93'
down_revision = '3f1c9a7d2b10'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'page_states',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('data_json', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('page_states', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_page_states_updated_at'), ['updated_at'], unique=False)


def downgrade():
    with op.batch_alter_table('page_states', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_page_states_updated_at'))
    op.drop_table('page_states')

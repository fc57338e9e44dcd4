from alembic import op
import sqlalchemy as sa

revision = '0002_add_ledger_entries'
down_revision = '0001_init'
branch_labels = None
depends_on = None

STATUSES = ('reserved', 'issued', 'returned', 'lost', 'damaged')

def upgrade():
    # part/profile references survive deletion as NULL so the audit trail is permanent
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('part_id', sa.Integer,
                  sa.ForeignKey('parts.id', name='fk_ledger_entries_part_id_parts', ondelete='SET NULL'),
                  nullable=True, index=True),
        sa.Column('profile_id', sa.Integer,
                  sa.ForeignKey('profiles.id', name='fk_ledger_entries_profile_id_profiles', ondelete='SET NULL'),
                  nullable=True, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='reserved'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('admin_remarks', sa.Text, nullable=True),
        sa.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in STATUSES) + ")",
            name='ck_ledger_entries_status',
        ),
    )
    op.create_index('idx_ledger_entries_created_at', 'ledger_entries', ['created_at'])

def downgrade():
    op.drop_index('idx_ledger_entries_created_at', table_name='ledger_entries')
    op.drop_table('ledger_entries')

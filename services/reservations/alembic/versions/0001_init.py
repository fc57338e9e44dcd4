from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False, unique=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('checkout_limit', sa.Integer, nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('checkout_limit >= 1', name='ck_categories_checkout_limit_positive'),
    )
    op.create_table(
        'parts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('category_id', sa.Integer,
                  sa.ForeignKey('categories.id', name='fk_parts_category_id_categories', ondelete='RESTRICT'),
                  nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('barcode', sa.String(100), nullable=True, unique=True),
        sa.Column('image_url', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity >= 0', name='ck_parts_quantity_non_negative'),
    )
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('external_id', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='team'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('team', 'admin')", name='ck_profiles_role'),
    )

def downgrade():
    op.drop_table('profiles')
    op.drop_table('parts')
    op.drop_table('categories')

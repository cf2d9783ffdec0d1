"""Initial schema

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSION = 1536

SIMILARITY_FUNCTIONS = [
    """
    CREATE OR REPLACE FUNCTION search_items_by_similarity(
        p_shop_id text, query_embedding vector(1536), match_limit integer, min_similarity double precision
    )
    RETURNS TABLE (
        merchant_item_id varchar, item_name varchar, item_description text, item_image_url varchar,
        price_cents integer, is_active boolean, similarity double precision
    )
    LANGUAGE sql STABLE AS $$
        SELECT mi.id, mi.name, mi.description, mi.image_url, mi.price_cents, mi.is_active,
               1 - (mi.embedding <=> query_embedding) AS similarity
        FROM merchant_items mi
        WHERE mi.shop_id = p_shop_id
          AND mi.is_active
          AND mi.embedding IS NOT NULL
          AND 1 - (mi.embedding <=> query_embedding) >= min_similarity
        ORDER BY mi.embedding <=> query_embedding
        LIMIT match_limit
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION search_items_across_shops_by_similarity(
        p_shop_ids text[], query_embedding vector(1536), match_limit integer, min_similarity double precision
    )
    RETURNS TABLE (
        merchant_item_id varchar, item_name varchar, item_description text, item_image_url varchar,
        price_cents integer, is_active boolean, similarity double precision,
        shop_id varchar, shop_name varchar
    )
    LANGUAGE sql STABLE AS $$
        SELECT mi.id, mi.name, mi.description, mi.image_url, mi.price_cents, mi.is_active,
               1 - (mi.embedding <=> query_embedding) AS similarity,
               s.id, s.name
        FROM merchant_items mi
        JOIN shops s ON s.id = mi.shop_id
        WHERE mi.shop_id = ANY(p_shop_ids)
          AND mi.is_active
          AND mi.embedding IS NOT NULL
          AND 1 - (mi.embedding <=> query_embedding) >= min_similarity
        ORDER BY mi.embedding <=> query_embedding
        LIMIT match_limit
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION search_user_preferences_by_similarity(
        p_consumer_id text, query_embedding vector(1536), match_limit integer, min_confidence double precision
    )
    RETURNS TABLE (
        entity_name varchar, preference_value varchar, confidence_score double precision,
        similarity double precision
    )
    LANGUAGE sql STABLE AS $$
        SELECT up.entity_name, up.preference_value, up.confidence_score,
               1 - (up.embedding <=> query_embedding) AS similarity
        FROM user_preferences up
        WHERE up.consumer_id = p_consumer_id
          AND up.confidence_score >= min_confidence
          AND up.embedding IS NOT NULL
        ORDER BY up.embedding <=> query_embedding
        LIMIT match_limit
    $$
    """,
]


def upgrade() -> None:
    op.create_table(
        'shops',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('delivery_radius', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('opening_hours', sa.JSON(), nullable=True),
        sa.Column('holidays', sa.JSON(), nullable=True),
        sa.Column('open_status_mode', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'shop_categories',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shop_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_shop_categories_shop_id'), 'shop_categories', ['shop_id'], unique=False)

    op.create_table(
        'merchant_items',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shop_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_merchant_items_shop_id'), 'merchant_items', ['shop_id'], unique=False)

    op.create_table(
        'item_categories',
        sa.Column('item_id', sa.String(36), nullable=False),
        sa.Column('category_id', sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(['item_id'], ['merchant_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['shop_categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('item_id', 'category_id')
    )

    op.create_table(
        'delivery_logic',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.String(36), nullable=False),
        sa.Column('minimum_order_value', sa.Float(), nullable=False),
        sa.Column('small_order_surcharge', sa.Float(), nullable=False),
        sa.Column('least_order_value', sa.Float(), nullable=False),
        sa.Column('distance_mode', sa.String(), nullable=False),
        sa.Column('max_delivery_fee', sa.Float(), nullable=False),
        sa.Column('distance_tiers', sa.JSON(), nullable=True),
        sa.Column('beyond_tier_fee_per_unit', sa.Float(), nullable=False),
        sa.Column('beyond_tier_distance_unit', sa.Float(), nullable=False),
        sa.Column('free_delivery_threshold', sa.Float(), nullable=False),
        sa.Column('free_delivery_radius', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id')
    )
    op.create_index(op.f('ix_delivery_logic_id'), 'delivery_logic', ['id'], unique=False)

    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=False),
        sa.Column('shop_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('consumer_id', 'shop_id', name='uq_carts_consumer_shop')
    )
    op.create_index(op.f('ix_carts_id'), 'carts', ['id'], unique=False)
    op.create_index(op.f('ix_carts_consumer_id'), 'carts', ['consumer_id'], unique=False)

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'item_id', name='uq_cart_items_cart_item')
    )
    op.create_index(op.f('ix_cart_items_id'), 'cart_items', ['id'], unique=False)

    op.create_table(
        'addresses',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=False),
        sa.Column('street_address', sa.String(), nullable=False),
        sa.Column('city', sa.String(), nullable=False),
        sa.Column('region', sa.String(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('landmark', sa.String(), nullable=True),
        sa.Column('formatted_address', sa.String(), nullable=True),
        sa.Column('is_saved', sa.Boolean(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_addresses_consumer_id'), 'addresses', ['consumer_id'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('order_number', sa.String(), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=False),
        sa.Column('shop_id', sa.String(36), nullable=False),
        sa.Column('address_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=False),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('delivery_fee_cents', sa.Integer(), nullable=False),
        sa.Column('surcharge_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.ForeignKeyConstraint(['address_id'], ['addresses.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_orders_order_number'), 'orders', ['order_number'], unique=True)
    op.create_index(op.f('ix_orders_consumer_id'), 'orders', ['consumer_id'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('merchant_item_id', sa.String(36), nullable=False),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_items_id'), 'order_items', ['id'], unique=False)

    op.create_table(
        'user_preferences',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('consumer_id', sa.String(), nullable=False),
        sa.Column('preference_type', sa.String(), nullable=False),
        sa.Column('entity_name', sa.String(), nullable=False),
        sa.Column('preference_value', sa.String(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_preferences_consumer_id'), 'user_preferences', ['consumer_id'], unique=False)

    # Embeddings and similarity functions need pgvector
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS vector')
        op.execute(f'ALTER TABLE merchant_items ADD COLUMN embedding vector({EMBEDDING_DIMENSION})')
        op.execute(f'ALTER TABLE user_preferences ADD COLUMN embedding vector({EMBEDDING_DIMENSION})')
        for statement in SIMILARITY_FUNCTIONS:
            op.execute(statement)


def downgrade() -> None:
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP FUNCTION IF EXISTS search_user_preferences_by_similarity')
        op.execute('DROP FUNCTION IF EXISTS search_items_across_shops_by_similarity')
        op.execute('DROP FUNCTION IF EXISTS search_items_by_similarity')
    op.drop_table('user_preferences')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('addresses')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('delivery_logic')
    op.drop_table('item_categories')
    op.drop_table('merchant_items')
    op.drop_table('shop_categories')
    op.drop_table('shops')

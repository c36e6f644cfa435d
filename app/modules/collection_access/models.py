# Supabase tables: collections, categories, products, orders, collection_access
# This file documents the columns the access engine reads and writes
# Actual operations are handled via Supabase SDK in access/store.py and service.py

"""
Expected Supabase table structure (only columns used here):

collections:
- id: uuid (primary key)
- user_id: uuid (owner, foreign key to auth.users.id)
- visible: boolean (public storefront visibility)

categories:
- id: uuid (primary key)
- collection_id: uuid (foreign key to collections.id, on delete cascade)

products:
- id: uuid (primary key)
- category_id: uuid (foreign key to categories.id)

orders:
- id: uuid (primary key)
- product_id: uuid (foreign key to products.id)
- wallet_address: text (buyer wallet at checkout, immutable snapshot)

collection_access:
- id: uuid (primary key)
- collection_id: uuid (foreign key to collections.id, on delete cascade)
- user_id: uuid (foreign key to auth.users.id, on delete cascade)
- access_type: text (check: 'view' | 'edit')
- granted_by: uuid (nullable)
- created_at: timestamp (default: now())
- unique constraint on (collection_id, user_id)
"""

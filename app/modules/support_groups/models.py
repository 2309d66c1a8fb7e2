# Supabase tables: support_groups, support_group_stages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in catalog.py

"""
Expected Supabase table structure:

support_groups:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- category: text (nullable)
- icon: text (nullable)
- color: text (nullable)
- is_archived: boolean (not null, default false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

support_group_stages:
- group_id: uuid (foreign key to support_groups.id, not null)
- stage: text (not null)
- position: integer (not null) - ordering of stages within the group
- capacity: integer (nullable, check capacity > 0) - falls back to MAX_ROOM_MEMBERS
- primary key (group_id, stage)
"""

"""Catalog queries used to build a schema snapshot."""

TABLES_QUERY = """
SELECT
  t.table_schema,
  t.table_name,
  t.table_type,
  obj_description(
    format('%%I.%%I', t.table_schema, t.table_name)::regclass, 'pg_class'
  ) AS description
FROM information_schema.tables AS t
WHERE t.table_schema = ANY(%(schemas)s)
  AND t.table_type IN ('BASE TABLE', 'VIEW')
ORDER BY t.table_schema, t.table_name;
"""

COLUMNS_QUERY = """
SELECT
  c.table_schema,
  c.table_name,
  c.column_name,
  c.data_type,
  c.is_nullable = 'YES' AS nullable,
  col_description(
    format('%%I.%%I', c.table_schema, c.table_name)::regclass, c.ordinal_position
  ) AS description
FROM information_schema.columns AS c
WHERE c.table_schema = ANY(%(schemas)s)
ORDER BY c.table_schema, c.table_name, c.ordinal_position;
"""

PRIMARY_KEYS_QUERY = """
SELECT kcu.table_schema, kcu.table_name, kcu.column_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  USING (constraint_schema, constraint_name, table_schema, table_name)
WHERE tc.constraint_type = 'PRIMARY KEY'
  AND tc.table_schema = ANY(%(schemas)s)
ORDER BY kcu.table_schema, kcu.table_name, kcu.ordinal_position;
"""

# One row per FK column pair, ordered so multi-column keys stay aligned.
FOREIGN_KEYS_QUERY = """
SELECT
  src.table_schema,
  src.table_name,
  src.constraint_name,
  src.column_name,
  ref.table_schema AS ref_schema,
  ref.table_name AS ref_table,
  ref.column_name AS ref_column
FROM information_schema.referential_constraints AS rc
JOIN information_schema.key_column_usage AS src
  ON src.constraint_schema = rc.constraint_schema
  AND src.constraint_name = rc.constraint_name
JOIN information_schema.key_column_usage AS ref
  ON ref.constraint_schema = rc.unique_constraint_schema
  AND ref.constraint_name = rc.unique_constraint_name
  AND ref.ordinal_position = src.position_in_unique_constraint
WHERE src.table_schema = ANY(%(schemas)s)
ORDER BY src.table_schema, src.table_name, src.constraint_name, src.ordinal_position;
"""

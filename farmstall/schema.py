SCHEMA_SQL = r"""
-- Document tree: one row per top-level child of the root ("inventory", "currentBatch", ...)
CREATE TABLE IF NOT EXISTS nodes (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,                   -- JSON-encoded subtree
  updated_at TEXT NOT NULL               -- ISO datetime of the last write
);

-- Store-wide revision, bumped on every committed write (change detection across processes)
CREATE TABLE IF NOT EXISTS store_meta (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  revision INTEGER NOT NULL DEFAULT 0
);

INSERT OR IGNORE INTO store_meta (id, revision) VALUES (1, 0);
"""

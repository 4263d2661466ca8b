"""Document store: markdown files with YAML frontmatter under one root.

Layout:
    <root>/
    ├── notes/
    │   └── welcome.md             # document "notes/welcome"
    ├── .folio/
    │   └── index.json             # metadata index (derived, safe to delete)
    ├── .folio.lock                # present only while a write is in flight
    └── .git/                      # versioned stores only

Components, leaves first: codec, lock, git, cache, adapter. The adapter is
the only piece callers are expected to construct, through ``initialize()``.
"""

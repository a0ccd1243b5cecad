"""Pipeline components: versioning, notes, upload, publish, retry."""

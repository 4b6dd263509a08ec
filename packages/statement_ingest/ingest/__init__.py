"""Statement ingestion: file reading and per-format extractors."""

"""HTTP adapter for the ingestion pipeline."""

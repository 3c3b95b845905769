"""Nessus scan ingestion: streaming parser and normalizer."""

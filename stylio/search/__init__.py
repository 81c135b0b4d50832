"""Discovery query construction: filters, sorting, geo pipelines and formatting."""

"""LLM side of the pipeline: backends, consensus, verification, pricing."""

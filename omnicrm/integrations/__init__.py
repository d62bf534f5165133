"""External integrations: Google APIs and LLM agents."""

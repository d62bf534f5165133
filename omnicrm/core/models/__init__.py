"""Core models and schemas shared by the API and the integrations."""

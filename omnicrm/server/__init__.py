"""FastAPI server exposing the OmniCRM JSON API."""

"""
I/O models for API requests and responses.

This package contains Pydantic-based I/O schemas that define the contract
between API endpoints and clients. These models are separate from database
entities to allow independent evolution of API contracts.

Modules:
- contacts: Contact and note I/O models
- momentum: Zone, project and task I/O models
- inbox: Inbox capture, AI results and approval I/O models
- onboarding: Onboarding token and intake form I/O models
- google: Google integration, preview and sync I/O models
- dashboard: Dashboard summary and sync error classification I/O models
"""

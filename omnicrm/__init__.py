"""OmniCRM.

Backend of a CRM for wellness practitioners: contact and note management,
the OmniMomentum productivity module (zones, projects, tasks and an AI-assisted
inbox), Google Workspace sync and public client onboarding.

Core subpackages
----------------

- ``omnicrm.core``:

  - Logging and logfire monitoring.
  - Database entities, repositories and session management.
  - Error classification for integration failures.
  - Zone/color utilities and credential encryption.

- ``omnicrm.integrations``:

  - Google OAuth, Gmail and Calendar REST clients.
  - The pydantic-ai backed inbox processors.

- ``omnicrm.server``:

  - The FastAPI application, API routers, services, middleware and the
    ``{ok, data}`` response envelope.

Typical workflow
----------------

1. A practitioner captures a thought in the inbox.
2. The inbox processor extracts tasks and projects with an LLM.
3. The practitioner approves the suggestions and they become OmniMomentum tasks.
"""

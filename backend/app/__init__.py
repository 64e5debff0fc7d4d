"""Content Moderation & Reporting Engine.

Ingests user reports against community content, serves the moderation
queue and applies audited moderation decisions.

Modules:
    - core: Configuration, database, Redis, Celery, logging, tracing, metrics
    - modules.auth: JWT actors and moderator authorization
    - modules.moderation: Reports, queue, moderation actions and audit trail
"""

__version__ = "0.1.0"

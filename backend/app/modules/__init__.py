"""Application modules.

- auth: JWT access tokens, actors and the moderator capability check
- moderation: Report ingestion, moderation queue, actions and audit log
"""

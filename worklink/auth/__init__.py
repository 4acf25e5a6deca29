"""
Client-side session management for the WorkLink platform.

Design goals:
- One session per process, held in an explicit `SessionStore`.
- Two credential sources (email/password and an OpenID Connect provider) normalized
  into one canonical `User`.
- Durable storage and in-memory state change together, after the remote call succeeded.
"""

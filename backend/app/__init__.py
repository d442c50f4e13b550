"""
JBin Backend — Application Package Initializer
================================================

JBin is a pastebin for JSON: clients store any JSON document and get back a
short random ID (and URL) that retrieves it.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   BlobService (Business Logic)      │  ← verification, validation, IDs
    ├─────────────────────────────────────┤
    │   BlobStore + RecaptchaVerifier     │  ← SQLite persistence, oracle I/O
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"

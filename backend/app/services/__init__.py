# Services package init
"""
JBin Backend — Services Layer
===============================

Service Inventory:
    - BlobStore:          Durable id → document mapping (async SQLAlchemy/SQLite)
    - BotVerifier:        Abstract bot-verification interface
    - RecaptchaVerifier:  reCAPTCHA v3 implementation over httpx
    - BlobService:        Create/retrieve rules on top of the store and verifier

Services know nothing about HTTP; routes translate between the two.
"""

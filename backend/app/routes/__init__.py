# Routes package init
"""
JBin Backend — API Routes Package
===================================

Route Inventory:
    - blobs.py:          POST /api/blobs            (store a document)
                         GET  /api/blobs/{blob_id}  (retrieve a document)
    - health.py:         GET  /api/health           (liveness probe)
    - public_config.py:  GET  /api/config           (frontend runtime config)

Routes stay thin: parse the request, call BlobService, shape the response.
"""

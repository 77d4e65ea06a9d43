"""Constantes HTTP pour éviter les valeurs magiques dans le code.

Ce module définit les codes de statut HTTP les plus couramment utilisés dans l'application pour
améliorer la lisibilité et éviter les valeurs magiques.
"""

# Codes de statut HTTP courants
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_BAD_GATEWAY = 502

# En-têtes SSE communs aux routes de streaming
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

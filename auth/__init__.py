"""auth/ -- Account authentication and session lifecycle for Astralx.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/ -- configuration values are passed in
at construction time (see auth.service.build_auth_service).
api/ imports from auth/, not the other way around.
"""

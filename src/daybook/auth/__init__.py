"""Authentication and authorization.

Learn: users authenticate with username/password and receive a JWT
access/refresh pair. Every protected request carries the access token
as a Bearer header; the dependency in auth.dependencies resolves it to
a CurrentPrincipal that routes pass explicitly to the services.
"""

"""Authentication and authorization.

Learn: users log in with e-mail + password and receive a short-lived access
JWT plus a refresh JWT. Every protected route resolves the bearer token to
a verified User row; role guards then decide what that user may do.
"""

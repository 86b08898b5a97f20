"""Authentication module (email + password).

Services:
    - AuthService: registration, login and logout against the users collection.
    - SessionStore: in-memory map of session tokens to identities.
"""

"""Session authentication for the archive.

Credentials are checked by ``CredentialService`` and reduced to two session
attributes, ``userId`` and ``userLogin``. The access gate reads those two
attributes on every guarded request.

Modules:
    - gate: Access gate evaluation and the ``require_session`` dependency.
    - service: Credential verification against configured users.
    - router: Login / logout endpoints.
"""

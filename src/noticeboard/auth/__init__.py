"""Authentication: password hashing, credentials, identity resolution.

Learn: Two competing ways to prove identity, one active per deployment:
1. token   → signed JWT in a cookie ("Bearer <token>")
2. session → opaque id in a cookie, mapped to a user server-side

Both resolve to the same thing (a User) and fail the same way
(absent / invalid / expired), so protected routes never care which one
is switched on.
"""

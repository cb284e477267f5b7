# Services package init
"""
ytclipper Backend — Services Layer
====================================

What:  Account rules and their collaborators, independent of HTTP.

Service Inventory:
    - TokenIssuer: signed access/refresh tokens and their cookies
    - PasswordHasher: password policy, bcrypt hash and verify
    - OneTimeTokenGenerator: verification and reset tokens with expiry windows
    - AccountService: the account flows, composing everything below
    - CredentialStore: `accounts` persistence
    - EmailService: verification and reset emails over HTTP
    - GoogleOAuthBridge: Google authorization-code exchange
    - TimestampService: timestamped video notes
"""

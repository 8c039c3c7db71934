# Services package init
"""
Digital Ledger Backend: Services Layer
=======================================

What:  Business logic between the routes (HTTP) and the database.
How:   Stateless classes that receive the request's AsyncSession per call,
       each exposed as a module-level singleton.

Service Inventory:
    - UserService (user_service):            the User Store
    - OAuthAccountResolver (oauth_resolver): provider profile → user
                                             (no in-package caller yet; the
                                             provider callback is not built)
    - AuthService (auth_service):            register, login, change password
"""

"""
Customers module.

- Shopper accounts (signup/login with hashed passwords, signed session)
- Profile, saved addresses, favorites, order stats
- Admin customer management (CRUD + status)
"""

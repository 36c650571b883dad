"""
Payment settings module.

Manual payment methods shoppers can pay with before uploading a proof:
crypto wallets, bank transfer, P2P apps, and gift-card style "Square" entries.
"""

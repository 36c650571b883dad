"""
Orders module.

- Checkout (totals, payment method choice, payment proof upload)
- Order tracking for shoppers
- Admin order management (status, payment status, dashboard stats)
"""

"""
Catalog module.

- Categories and products (normalized rows, row-level updates)
- Product image galleries (first image is the primary image)
- Media host uploads for admin product images
"""

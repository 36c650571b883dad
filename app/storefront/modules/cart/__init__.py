"""
Shopping cart held in the signed session cookie as {product_id: quantity}.
"""

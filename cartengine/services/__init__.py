"""Cart services: pricing, promo validation, paid-drink reconciliation and the cart store."""

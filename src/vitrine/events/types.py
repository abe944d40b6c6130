"""Event type constants.

Learn: These are the message names pushed to realtime clients. The
storefront script listens for exactly these strings, so they are part
of the wire contract.
"""

PRODUCT_CREATED = "created"
PRODUCT_UPDATED = "updated"
PRODUCT_DELETED = "deleted"

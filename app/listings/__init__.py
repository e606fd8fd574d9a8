"""
Listings Application - device listings offered for sale.

Listing CRUD, search and moderation live outside this service; the
escrow engine reads price, device type, seller and status at checkout
and flips status as a sale progresses (ACTIVE -> PENDING -> SOLD).
"""

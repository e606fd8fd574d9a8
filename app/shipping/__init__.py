"""
Shipping Application - rate, tax and carrier-tracking collaborators.

Modules:
    rates: device weight classes, standard shipping cost, free-shipping rule
    tax: ZIP-to-state lookup and state sales tax
    tracking: carrier detection and UPS/FedEx/USPS tracking clients
"""

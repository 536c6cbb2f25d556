"""Remote service clients and shared money helpers.

Import clients from their modules (`commerce.services.cart_service`, ...);
this package stays import-free so the domain models can depend on
`commerce.services.money` without cycles.
"""

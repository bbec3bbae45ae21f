"""
Services module for business logic.

- domain/: application services (sessions, carts, orders, promotions,
  tickets, receipts, menu)
- events/: transactional outbox and its Redis publisher

Usage:
    from rest_api.services.domain import CartService
    service = CartService(db)
    service.increment(session_id, guest_id, product_id, delta=1)
"""

"""
Notifications app: fire-and-forget delivery of domain events.

Financial code calls notify(event, payload) inside its transaction. The
event is handed to Celery only after the transaction commits, and the
send_notification task fans it out to the configured backends. Delivery
failures never reach the caller.

Usage:
    from notifications.services import notify
    from notifications.events import NotificationEvent

    notify(NotificationEvent.ORDER_STATUS_CHANGED, {"order_id": str(order.id)})
"""

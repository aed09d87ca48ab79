"""Custom signals for the registration app.

Signals:
    order_paid: Sent after the transaction that marks an order PAID commits.
        Sender: The ``Order`` class.
        Kwargs:
            order: The ``Order`` instance that was paid.
            registration: The ``Registration`` the order was applied to.
            user: The user who owns the order.
"""

from django.dispatch import Signal

order_paid = Signal()

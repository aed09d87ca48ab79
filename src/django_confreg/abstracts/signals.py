"""Custom signals for the abstracts app.

Both signals are sent after the submitting or reviewing transaction commits.

Signals:
    abstract_submitted: A new abstract was stored.
        Sender: The ``Abstract`` class.
        Kwargs:
            abstract: The new ``Abstract`` instance.
    abstract_reviewed: A review decision was recorded.
        Sender: The ``Abstract`` class.
        Kwargs:
            abstract: The reviewed ``Abstract`` instance.
            review: The new ``AbstractReview`` instance.
"""

from django.dispatch import Signal

abstract_submitted = Signal()
abstract_reviewed = Signal()

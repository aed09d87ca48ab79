"""Custom signals for the accounts app.

All signals are sent after the registering or reviewing transaction commits.

Signals:
    member_registered: A new account was created.
        Sender: The ``Member`` class.
        Kwargs:
            member: The new ``Member`` instance.
    member_verified: Staff approved or rejected a student document.
        Sender: The ``Member`` class.
        Kwargs:
            member: The reviewed ``Member``; its ``status`` holds the outcome.
    document_resubmitted: A rejected student uploaded a new document.
        Sender: The ``Member`` class.
        Kwargs:
            member: The ``Member``, back in ``pending_approval``.
"""

from django.dispatch import Signal

member_registered = Signal()
member_verified = Signal()
document_resubmitted = Signal()

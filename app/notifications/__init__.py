"""
Notifications Application - in-app notifications for buyers and sellers.

The escrow engine calls ``NotificationService.notify`` and never waits on
delivery; a failure to record a notification is logged and swallowed so
it cannot roll back a transaction state change.
"""

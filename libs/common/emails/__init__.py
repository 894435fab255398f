"""
GoBusker Email Package.

Modules:
- core: Base send_email function (SMTP)
- invites: band invitation email
"""

"""
Authentication application.

Email-based marketplace accounts and JWT login.

Key components:
    - User model: role, ban flag and seller subscription tier
    - UserManager: email-keyed user creation
    - simplejwt token endpoints and the current-user view
"""

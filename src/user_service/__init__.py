"""User profile service.

Provisions user records from identity provider signups, serves the current
user's profile over HTTP and publishes domain events for every change.
"""

__version__ = "0.1.0"

"""TNKR — marketplace backend for sneaker cleaning and repair.

Customers post service requests (with photos), technicians get verified
by an admin and pick up the work, and both sides talk over a real-time
messaging channel. Read-heavy endpoints are cached in Redis.
"""

__version__ = "0.1.0"

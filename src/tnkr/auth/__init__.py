"""Authentication and authorization.

Learn: Users log in with email/password and receive a JWT that is valid
for two hours. The same token authenticates REST calls (Bearer or
access-token header) and the real-time WebSocket handshake (?token=).

Authorization is a single capability table (policy.py) checked once per
request, instead of role string comparisons inside every handler.
"""

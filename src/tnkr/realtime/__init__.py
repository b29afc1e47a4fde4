"""Real-time messaging — WebSocket gateway, rooms, rate limiting.

Learn: A send flows through four pieces:
1. websocket.py  — authenticates the handshake, reads/writes JSON frames
2. gateway.py    — rate limit → validate → persist → fan out → ack
3. rate_limit.py — sliding-window cap per sender, stored in Redis
4. registry.py   — room membership; each connection owns an outbound queue

Live delivery is at-most-once; Postgres holds the durable copy.
"""

"""
Networking Infrastructure

- http: REST transport manager and request strategies
- websocket: persistent streaming transport with reconnect and heartbeat
"""

"""
Infrastructure Components

Foundational services shared by the exchange integrations:
- networking: REST transport manager and persistent WebSocket transport
- logging: structured logging with console, file and metrics backends
- exceptions: error taxonomy rooted at ExchangeError
"""

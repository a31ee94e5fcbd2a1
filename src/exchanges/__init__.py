"""
Exchange Module

Exchange-facing data types and integrations.

- structs: Order, OrderSpec and the order enums shared by integrations
- integrations.bybit: Bybit v5 signing, private stream session,
  subscriptions, REST client and order gateway
"""

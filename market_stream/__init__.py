"""
market_stream - resilient client for Binance public market data streams.

Manages topic subscriptions at runtime over one WebSocket connection,
correlates server acknowledgements with the commands that caused them,
decodes trade / aggTrade / ticker / kline payloads into typed events and
keeps message timing statistics.
"""

__version__ = "0.1.0"

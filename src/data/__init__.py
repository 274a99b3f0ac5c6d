"""External data access for token analytics.

Subpackages:
    - providers: HTTP adapters (Moralis, BitQuery, Dexscreener, CoinGecko,
      The Graph, Dune, Etherscan, JSON-RPC) plus rate limiting and
      circuit breaking
"""

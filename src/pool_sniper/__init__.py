"""
Liquidity Pool Sniper.

An event-driven bot that watches newly opened liquidity pools, gates them
through an ordered filter pipeline, buys through a retrying settlement
workflow and sells again on take-profit, stop-loss or holding-time exits.
The chain connection, transaction signing and submission are supplied by a
pluggable adapter; this package holds the decision and control logic.
"""

__version__ = "0.1.0"

"""
Pneuma - On-chain interaction layer.

Provides the JSON-RPC client, ABI handling, nonce allocation, and the
build -> sign -> submit -> confirm transaction pipeline.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""

"""
Theurgy - Command implementations for the chainrite CLI.

Each module corresponds to a top-level CLI command:
- block:    Query block details (latest or by number)
- balance:  Show an account balance
- transfer: Send a native currency transfer
- counter:  Deploy and drive the Counter example contract
"""

"""Marketplace write-path use-cases.

Item creation, update, purchase and likes. Each mutation that changes an
item's embedding or sale status updates the embedding cache right after the
store write succeeds.
"""

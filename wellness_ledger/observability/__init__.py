"""Prometheus metrics for the wellness ledger"""

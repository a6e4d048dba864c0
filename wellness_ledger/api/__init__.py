"""REST API for the wellness ledger"""

"""Reconciliation services"""
# Register every mapper before the first query configures relationships
import stockledger.models  # noqa: F401

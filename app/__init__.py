"""
FastAPI Application Package

This package contains the main FastAPI application and routing logic.
It serves as the entry point for the price API: consolidated prices,
precise prices, merged history and multi-asset prices.
"""

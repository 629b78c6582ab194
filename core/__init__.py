"""
Core Package

Contains the provider-agnostic core of the price engine:
- MarketSource: Abstract base class defining the contract for all price providers
- SourceManager: Registry that owns the shared HTTP client and every source
- HttpClient: Outbound GET with per-attempt timeouts and retry/backoff
- Schemas: Pydantic models for quotes and endpoint payloads
- Config / Heuristics: Settings and the injectable weight, ceiling and FX tables

This layer keeps every provider behind the same interface, so the aggregation
services never depend on a specific provider.
"""

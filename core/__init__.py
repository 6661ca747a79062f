"""
Core Package

Contains the provider-agnostic core logic including:
- Chain Registry and Asset Canonicalizer: one canonical identity per asset across providers
- ProviderAdapter: Abstract base class defining the contract for all providers
- ProviderManager / AggregationRouter: provider registry and partial-success fan-out
- Liquidity prober, resilient HTTP client and rate limiter shared by all adapters
- Schemas: Pydantic models for normalized data structures (routes, quotes, volumes, depth)

This layer ensures all providers follow the same interface, making the system modular and scalable.
"""

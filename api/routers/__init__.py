"""
API Routers - Organized endpoint handlers for the Enrichment API.

Each router handles a specific domain:
- enrichment: Bulk column enrichment and prompt previews
"""

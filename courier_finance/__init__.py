"""Finance reconciliation engine for a courier back office."""

"""Domain layer: records, reconciliation and dispatch."""

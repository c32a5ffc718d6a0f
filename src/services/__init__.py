"""Service layer for the playground sandbox orchestrator."""

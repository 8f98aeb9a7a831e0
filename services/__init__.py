"""Service implementations for the subgraph directory domain."""

"""Access control — roles, ban propagation, and reputation visibility."""

"""Detection rules and result assembly."""

"""Media storage and outbound mail."""

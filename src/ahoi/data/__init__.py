"""Record validation, the generic row mapper and the Dynamic CRUD Engine."""

"""Structure and field definitions, type mapping and the Schema Manager."""

"""SQL building and CRUD operations."""

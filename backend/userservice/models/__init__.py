"""ORM Models — one module per stored document type."""

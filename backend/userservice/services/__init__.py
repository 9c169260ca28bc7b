"""Services — business logic between controllers and repositories."""

"""HTTP layer — schemas, dependencies and versioned routers."""

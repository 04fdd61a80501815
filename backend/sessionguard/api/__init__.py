"""HTTP layer: routers, dependencies and the session gate."""

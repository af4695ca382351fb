"""FastAPI application: factory, lifespan, exception handlers and routers."""

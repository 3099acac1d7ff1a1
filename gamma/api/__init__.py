"""HTTP entrypoint: FastAPI application wired with the observability core."""

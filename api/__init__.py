"""HTTP surface: FastAPI app and routers."""

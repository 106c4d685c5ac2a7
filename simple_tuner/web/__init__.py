"""HTTP and websocket surface for browser clients (FastAPI)."""

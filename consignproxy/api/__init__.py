"""HTTP API — FastAPI routes over the HandshakeService."""

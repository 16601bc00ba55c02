"""Request/response schemas shared by routers, services and clients."""

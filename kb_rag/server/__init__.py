"""HTTP server exposing the knowledge base chat endpoint."""

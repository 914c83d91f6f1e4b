"""Service layer modules for stocksync."""

"""DriftGuard HTTP backend."""

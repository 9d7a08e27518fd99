"""Test support helpers (fakes and builders) shared across the suite."""

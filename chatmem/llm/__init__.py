"""Model registry and text-completion backends."""

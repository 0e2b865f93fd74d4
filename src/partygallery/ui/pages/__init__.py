"""Page renderers, one module per page."""

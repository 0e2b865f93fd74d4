"""HTTP-style endpoint handlers for partygallery."""

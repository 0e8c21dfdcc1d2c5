"""Touch input and drawing collaborators."""

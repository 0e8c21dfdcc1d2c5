"""Pure scheduling logic: day queries, grid layout, navigation and view models."""

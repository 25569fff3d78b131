"""Rule descriptors, registry and rule pack loading."""

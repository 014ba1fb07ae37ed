"""Library client: cache, optimistic mutations, selections and derived views."""

"""Document store, persistence-backed stores and serializers."""

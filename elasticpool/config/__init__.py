"""Bundled configuration resources for ElasticPool."""

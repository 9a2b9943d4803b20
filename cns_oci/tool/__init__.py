"""Command line tool for packaging and pushing bundles as OCI artifacts."""

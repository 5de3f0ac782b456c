"""FlareCert display utilities."""

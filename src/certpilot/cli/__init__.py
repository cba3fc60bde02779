"""CertPilot command-line interface."""

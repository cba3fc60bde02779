"""CertPilot: DNS-01 certificate issuance for cloud-hosted DNS zones."""

__version__ = "1.0.0"

"""Provisioning and verification services."""

from provisioner.services.provisioner import Provisioner, provision
from provisioner.services.verification import verify_provisioning


__all__ = ["Provisioner", "provision", "verify_provisioning"]

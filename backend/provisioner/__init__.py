"""
gin-admin MongoDB Provisioner

Idempotent bring-up of the gin_admin MongoDB database: the application
principal, the base collections and their indexes, and the seed roles.

Package Structure:
- core/: MongoSession, the explicit connection/session object
- models/: Seed specification and run report models
- services/: Provisioning and verification
- utils/: Logging configuration
- cli.py: gin-provision command
"""

__version__ = "1.0.0"
